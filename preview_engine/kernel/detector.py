"""
Preview Kernel — Framework detection

Ordered signature checks over a FlatFileMap, first match wins.
Next.js must be checked before React and Vue: hybrid templates carry React
syntax and sometimes stray .vue files.
"""

from __future__ import annotations

from preview_engine.kernel.types import FlatFileMap, Framework

NEXTJS_SIGNATURES: tuple[str, ...] = (
    "src/app/page.tsx",
    "app/page.tsx",
    "src/pages/index.tsx",
    "pages/index.tsx",
    "next.config.js",
)

VUE_SIGNATURES: tuple[str, ...] = ("src/App.vue",)

EXPRESS_SIGNATURES: tuple[str, ...] = ("src/server.ts", "app.js")

REACT_SIGNATURES: tuple[str, ...] = ("src/App.tsx", "src/App.jsx", "src/main.tsx")


def detect_framework(files: FlatFileMap) -> Framework:
    """Resolve the project shape. Never raises; defaults to GENERIC."""
    if any(path in files for path in NEXTJS_SIGNATURES):
        return Framework.NEXTJS
    if any(path in files for path in VUE_SIGNATURES) or any(path.endswith(".vue") for path in files):
        return Framework.VUE
    if any(path in files for path in EXPRESS_SIGNATURES):
        return Framework.EXPRESS_API
    if any(path in files for path in REACT_SIGNATURES):
        return Framework.REACT
    return Framework.GENERIC
