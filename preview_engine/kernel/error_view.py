"""Full-document error view, painted only when no good document exists yet."""

from __future__ import annotations

import chevron

from preview_engine.kernel.templates import DOCUMENT_TEMPLATE, ERROR_BODY, STYLESHEET_URL

_HEADINGS = {
    "compile": ("Compilation Error", "Your code could not be compiled into a preview."),
    "transport": ("Preview Offline", "The preview server could not be reached."),
    "auth": ("Reconnect Required", "Your session could not be verified. Sign in again to resume live preview."),
}


def render_error_view(message: str, kind: str = "compile") -> str:
    heading, summary = _HEADINGS.get(kind, _HEADINGS["compile"])
    body = chevron.render(ERROR_BODY, {"heading": heading, "summary": summary, "message": message})
    return chevron.render(
        DOCUMENT_TEMPLATE,
        {
            "title": heading,
            "stylesheet_url": STYLESHEET_URL,
            "css": "",
            "body": body,
            "body_class": "",
        },
    )
