"""
Preview Kernel — Template compilers

Pure functions: FlatFileMap → complete HTML document string.
No IO. Deterministic: same files → byte-identical output, always.

One compiler per Framework. Every compiler honours the same contract:
  - returns one complete <html> document, suitable for iframe srcdoc
  - the only external reference is the CDN utility stylesheet
  - never raises; internal failures degrade to a minimal document

compile_project() is the entry point used by the runtime and the compile
authority: detect → compile → hash.
"""

from __future__ import annotations

import logging
import re
import time

import chevron

from preview_engine.kernel.detector import detect_framework
from preview_engine.kernel.errors import CompileError
from preview_engine.kernel.jsx import extract_return_jsx, string_literal, translate_component, translate_jsx
from preview_engine.kernel.sentinels import SentinelRegistry, default_registry
from preview_engine.kernel.templates import (
    API_CATALOG_BODY,
    DOCUMENT_TEMPLATE,
    LOADING_BODY,
    MINIMAL_BODY,
    PLACEHOLDER_BODY,
    STYLESHEET_URL,
)
from preview_engine.kernel.types import CompiledDocument, FlatFileMap, Framework

logger = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"<h[1-6][^>]*>([^<]+)<", re.IGNORECASE)

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def render_document(title: str, body: str, css: str = "", body_class: str = "") -> str:
    """Wrap a body in the shared document shell."""
    return chevron.render(
        DOCUMENT_TEMPLATE,
        {
            "title": title,
            "stylesheet_url": STYLESHEET_URL,
            "css": css,
            "body": body,
            "body_class": body_class,
        },
    )


def collect_css(files: FlatFileMap) -> str:
    """Every .css file, in path order, joined into one stylesheet."""
    return "\n\n".join(files[path] for path in sorted(files) if path.endswith(".css"))


def extract_title(html: str) -> str | None:
    """Text of the first <h1>–<h6>, or None."""
    match = _HEADING_RE.search(html)
    if not match:
        return None
    title = " ".join(match.group(1).split())
    return title or None


def placeholder_body(
    heading: str,
    subtitle: str = "Built with SwiStack",
    badge: str | None = None,
    button: dict[str, str] | None = None,
) -> str:
    return chevron.render(
        PLACEHOLDER_BODY,
        {"heading": heading, "subtitle": subtitle, "badge": badge, "button": button},
    )


def minimal_document(label: str, detail: str) -> str:
    return render_document(title=label, body=chevron.render(MINIMAL_BODY, {"detail": detail}))


def is_redirect_stub(source: str) -> bool:
    """A page that only redirects: calls redirect() and returns no markup."""
    if "redirect(" not in source:
        return False
    try:
        return not extract_return_jsx(source)
    except CompileError:
        # Unparseable markup is still markup
        return False


# ---------------------------------------------------------------------------
# Compiler base
# ---------------------------------------------------------------------------


class TemplateCompiler:
    """
    Base class. Subclasses implement _compile(); compile() guarantees the
    no-raise contract.
    """

    framework: Framework = Framework.GENERIC
    label: str = "Live Preview"

    def __init__(self, registry: SentinelRegistry | None = None):
        self.registry = registry if registry is not None else default_registry()

    def compile(self, files: FlatFileMap) -> str:
        try:
            return self._compile(files)
        except Exception as e:
            logger.exception("compiler: %s compile failed, emitting minimal document", self.framework.value)
            return minimal_document(self.label, str(e) or type(e).__name__)

    def _compile(self, files: FlatFileMap) -> str:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Next.js
# ---------------------------------------------------------------------------


class NextJsCompiler(TemplateCompiler):
    framework = Framework.NEXTJS
    label = "Next.js App"

    ENTRY_PATHS: tuple[str, ...] = (
        "app/page.tsx",
        "src/app/page.tsx",
        "src/pages/index.tsx",
        "pages/index.tsx",
    )
    MIN_ALTERNATIVE_LENGTH = 100

    def select_page(self, files: FlatFileMap) -> tuple[str | None, str]:
        """
        Locate the page to preview. A redirect-only entry is replaced by the
        first other page.tsx (in path order) with real content.
        """
        entry = next((p for p in self.ENTRY_PATHS if p in files), None)
        if entry is None:
            return None, ""

        source = files[entry]
        if not is_redirect_stub(source):
            return entry, source

        for path in sorted(files):
            if path == entry or not path.endswith("page.tsx"):
                continue
            candidate = files[path]
            if len(candidate) > self.MIN_ALTERNATIVE_LENGTH and not is_redirect_stub(candidate):
                logger.info("compiler: %s redirects, previewing %s instead", entry, path)
                return path, candidate
        return entry, source

    def _compile(self, files: FlatFileMap) -> str:
        css = collect_css(files)
        _, source = self.select_page(files)
        if not source:
            return render_document(self.label, placeholder_body("▲ Next.js App"), css)

        sentinel = self.registry.match(source, self.framework)
        if sentinel is not None:
            body = sentinel.render(source)
        else:
            try:
                body = translate_component(source)
            except CompileError as e:
                logger.warning("compiler: JSX parse failed (%s), using fallback page", e)
                title = extract_title(source) or self.label
                fallback = placeholder_body(title, "Dynamic preview parsing failed", badge=self.label)
                return render_document(title, fallback, css)

        if not body:
            return render_document(self.label, placeholder_body("▲ Next.js App"), css)
        return render_document(extract_title(body) or self.label, body, css)


# ---------------------------------------------------------------------------
# React
# ---------------------------------------------------------------------------


class ReactCompiler(TemplateCompiler):
    framework = Framework.REACT
    label = "React App"

    ENTRY_PATHS: tuple[str, ...] = ("src/App.tsx", "src/App.jsx")

    def _compile(self, files: FlatFileMap) -> str:
        css = collect_css(files)
        source = next((files[p] for p in self.ENTRY_PATHS if p in files), "")

        body = ""
        if source:
            sentinel = self.registry.match(source, self.framework)
            if sentinel is not None:
                body = sentinel.render(source)
            else:
                try:
                    body = translate_component(source)
                except CompileError as e:
                    logger.warning("compiler: JSX parse failed (%s), using placeholder", e)

        if not body:
            return render_document(self.label, placeholder_body("⚛️ React App"), css)
        return render_document(extract_title(body) or self.label, body, css)


# ---------------------------------------------------------------------------
# Vue
# ---------------------------------------------------------------------------

_VUE_TEMPLATE_RE = re.compile(r"<template[^>]*>([\s\S]*)</template>")
_MUSTACHE_RE = re.compile(r"\{\{([\s\S]*?)\}\}")
_VUE_DIRECTIVE_RE = re.compile(r"""\s(?:v-[\w:.\[\]-]+|[:@#][\w:.\[\]-]+)(?:\s*=\s*(?:"[^"]*"|'[^']*'))?""")


def _vue_template_markup(source: str) -> str:
    """
    The <template> block of a single-file component with bindings removed:
    {{ 'literal' }} keeps its text, other interpolations and every directive
    (v-*, :prop, @event, #slot) are dropped.
    """
    match = _VUE_TEMPLATE_RE.search(source)
    if not match:
        return ""

    def _interpolation(m: re.Match[str]) -> str:
        return string_literal(m.group(1)) or ""

    markup = _MUSTACHE_RE.sub(_interpolation, match.group(1))
    return _VUE_DIRECTIVE_RE.sub("", markup)


class VueCompiler(TemplateCompiler):
    framework = Framework.VUE
    label = "Vue App"

    def _compile(self, files: FlatFileMap) -> str:
        css = collect_css(files)
        path = "src/App.vue" if "src/App.vue" in files else next((p for p in sorted(files) if p.endswith(".vue")), None)

        body = ""
        if path is not None:
            try:
                body = translate_jsx(_vue_template_markup(files[path]))
            except CompileError as e:
                logger.warning("compiler: Vue template parse failed (%s), using placeholder", e)

        if not body:
            counter = {"color": "green", "label": "count is 0"}
            return render_document(self.label, placeholder_body("💚 Vue.js App", button=counter), css)
        return render_document(extract_title(body) or self.label, body, css)


# ---------------------------------------------------------------------------
# Express API
# ---------------------------------------------------------------------------

_ROUTE_RE = re.compile(r"""\.(get|post|put|patch|delete)\(\s*['"`]([^'"`]+)['"`]""", re.IGNORECASE)


class ExpressApiCompiler(TemplateCompiler):
    """Static catalog of the routes mentioned in the server source. Nothing is executed."""

    framework = Framework.EXPRESS_API
    label = "Express API"

    SERVER_PATHS: tuple[str, ...] = ("src/server.ts", "app.js", "server.js", "src/app.ts", "src/index.ts")
    KNOWN_ROUTES: tuple[tuple[str, str], ...] = (
        ("GET", "/api/users"),
        ("GET", "/api/posts"),
        ("GET", "/health"),
    )

    def scan_routes(self, files: FlatFileMap) -> list[tuple[str, str]]:
        sources = [files[p] for p in self.SERVER_PATHS if p in files]
        sources += [
            files[p]
            for p in sorted(files)
            if "/routes/" in f"/{p}" and p.endswith((".ts", ".js")) and p not in self.SERVER_PATHS
        ]

        endpoints: list[tuple[str, str]] = []
        for source in sources:
            for method, route in _ROUTE_RE.findall(source):
                endpoint = (method.upper(), route)
                if endpoint not in endpoints:
                    endpoints.append(endpoint)
            for method, route in self.KNOWN_ROUTES:
                if route in source and all(r != route for _, r in endpoints):
                    endpoints.append((method, route))
        return endpoints

    def _compile(self, files: FlatFileMap) -> str:
        endpoints = [{"method": m, "path": p} for m, p in self.scan_routes(files)]
        body = chevron.render(API_CATALOG_BODY, {"endpoints": endpoints})
        return render_document("Express API", body, body_class="bg-gray-50")


# ---------------------------------------------------------------------------
# Generic
# ---------------------------------------------------------------------------


class GenericCompiler(TemplateCompiler):
    framework = Framework.GENERIC
    label = "Live Preview"

    def _compile(self, files: FlatFileMap) -> str:
        html = files.get("index.html")
        if html is None:
            html_path = next((p for p in sorted(files) if p.endswith((".html", ".htm"))), None)
            html = files[html_path] if html_path is not None else None

        if html is not None:
            if "<html" in html.lower():
                return html
            return render_document(extract_title(html) or self.label, html, collect_css(files))

        message = "Loading template..." if not files else "Processing template files..."
        body = chevron.render(LOADING_BODY, {"message": message})
        return render_document(
            "Loading Preview",
            body,
            collect_css(files),
            body_class="bg-gray-50 min-h-screen flex items-center justify-center",
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def default_compilers(registry: SentinelRegistry | None = None) -> dict[Framework, TemplateCompiler]:
    registry = registry if registry is not None else default_registry()
    return {
        Framework.NEXTJS: NextJsCompiler(registry),
        Framework.VUE: VueCompiler(registry),
        Framework.EXPRESS_API: ExpressApiCompiler(registry),
        Framework.REACT: ReactCompiler(registry),
        Framework.GENERIC: GenericCompiler(registry),
    }


COMPILERS: dict[Framework, TemplateCompiler] = default_compilers()


def compile_html(files: FlatFileMap) -> str:
    return COMPILERS[detect_framework(files)].compile(files)


def compile_project(
    files: FlatFileMap,
    compilers: dict[Framework, TemplateCompiler] | None = None,
) -> CompiledDocument:
    """Detect, compile and hash one project snapshot."""
    compilers = compilers or COMPILERS
    start = time.perf_counter()
    framework = detect_framework(files)
    html = compilers[framework].compile(files)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.debug("compiler: %s compiled in %.1fms (%d files)", framework.value, duration_ms, len(files))
    return CompiledDocument.build(html, framework, duration_ms)
