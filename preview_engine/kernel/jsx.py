"""
Preview Kernel — JSX → HTML translator

Textual, not AST-based: a small scanner walks the markup and emits tokens
(text, {expression}, open tag, close tag). Expressions are read with a
brace-depth counter that skips string literals, template literals, comments
and nested elements, so nested braces never truncate content.

What survives translation:
  - tags and attributes (className → class, htmlFor → for)
  - Link components become <a>, keeping their children
  - string-literal interpolations: {'text'}, {"text"}, {`text`}
  - self-closing custom tags become <Tag></Tag>; void elements become <br>

What is dropped:
  - every other {expression}, including event handlers and spreads
  - fragments (<> </>)

Unterminated tags and expressions raise CompileError.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

from preview_engine.kernel.errors import CompileError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VOID_ELEMENTS: frozenset[str] = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}
)

COMPONENT_TAGS: dict[str, str] = {
    "Link": "a",
    "NextLink": "a",
    "Image": "img",
}

ATTRIBUTE_RENAMES: dict[str, str] = {
    "className": "class",
    "htmlFor": "for",
}

_USE_CLIENT_RE = re.compile(r"""^\s*['"]use client['"];?\s*""")
_IMPORT_RE = re.compile(
    r"""^\s*import\s+(?:type\s+)?(?:[\s\S]*?\s+from\s+)?['"][^'"\n]+['"];?[ \t]*$""",
    re.MULTILINE,
)
_EXPORT_DEFAULT_FN_RE = re.compile(
    r"export\s+default\s+(?:async\s+)?function\s*[\w$]*\s*\([^)]*\)\s*(?::\s*[^{]+)?\{"
)
_RETURN_RE = re.compile(r"\breturn\b\s*")
_NAME_RE = re.compile(r"[A-Za-z_$][\w.:$-]*")
_ATTR_NAME_RE = re.compile(r"[A-Za-z_$][\w.:$-]*")
_WHITESPACE_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


@dataclass
class Attribute:
    name: str
    value: str | None = None
    expression: bool = False


@dataclass
class Token:
    kind: Literal["text", "expr", "open", "close"]
    value: str = ""
    attributes: list[Attribute] = field(default_factory=list)
    self_closing: bool = False


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


class JSXScanner:
    """Single-pass scanner over JSX markup. Positions are offsets into source."""

    def __init__(self, source: str, pos: int = 0):
        self.source = source
        self.pos = pos

    @property
    def eof(self) -> bool:
        return self.pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        i = self.pos + offset
        return self.source[i] if i < len(self.source) else ""

    def _skip_whitespace(self) -> None:
        while not self.eof and self.source[self.pos].isspace():
            self.pos += 1

    def _at_tag_start(self) -> bool:
        if self._peek() != "<":
            return False
        nxt = self._peek(1)
        return nxt.isalpha() or nxt in ("/", ">", "_", "$")

    # -- tokens --

    def next_token(self) -> Token | None:
        if self.eof:
            return None
        if self._peek() == "{":
            return Token("expr", self.read_braced())
        if self._at_tag_start():
            return self.read_tag()
        return Token("text", self._read_text())

    def tokens(self) -> list[Token]:
        result: list[Token] = []
        while (token := self.next_token()) is not None:
            result.append(token)
        return result

    def _read_text(self) -> str:
        start = self.pos
        self.pos += 1
        while not self.eof and self._peek() != "{" and not self._at_tag_start():
            self.pos += 1
        return self.source[start : self.pos]

    # -- expressions --

    def read_braced(self) -> str:
        """Read a {...} expression starting at the current "{". Returns the inner text."""
        start = self.pos
        depth = 0
        src = self.source
        while self.pos < len(src):
            ch = src[self.pos]
            if ch in ("'", '"'):
                if self._skip_quoted(ch):
                    continue
            elif ch == "`":
                self._skip_template()
                continue
            elif ch == "/" and self._peek(1) == "*":
                end = src.find("*/", self.pos + 2)
                if end == -1:
                    raise CompileError(f"Unterminated comment at offset {self.pos}")
                self.pos = end + 2
                continue
            elif ch == "/" and self._peek(1) == "/" and self._line_comment_allowed():
                end = src.find("\n", self.pos)
                self.pos = len(src) if end == -1 else end
                continue
            elif ch == "<" and self._at_tag_start() and self._element_allowed(start):
                # Element text is markup, not JS; apostrophes in it are not quotes
                self.pos = JSXScanner(src, self.pos).element_end()
                continue
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    self.pos += 1
                    return src[start + 1 : self.pos - 1]
            self.pos += 1
        raise CompileError(f"Unterminated expression starting at offset {start}")

    def _element_allowed(self, expr_start: int) -> bool:
        """True when the "<" at pos opens an element rather than a comparison."""
        src = self.source
        i = self.pos - 1
        while i > expr_start and src[i].isspace():
            i -= 1
        prev = src[i]
        if prev in "{([,?:&|":
            return True
        if prev == ">" and src[i - 1] == "=":
            return True
        return src[i - 5 : i + 1] == "return" and not (src[i - 6].isalnum() or src[i - 6] in "_$")

    def _line_comment_allowed(self) -> bool:
        # "//" after ":" is a URL scheme, not a comment
        if self.pos == 0:
            return True
        prev = self.source[self.pos - 1]
        return prev.isspace() or prev in "{(,;"

    def _skip_quoted(self, quote: str) -> bool:
        """
        Skip a '...' or "..." literal. JS quoted strings cannot span lines,
        so an unmatched quote before the newline is treated as a plain
        character (an apostrophe in JSX text) and nothing is consumed.
        """
        src = self.source
        i = self.pos + 1
        while i < len(src):
            ch = src[i]
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                self.pos = i + 1
                return True
            if ch == "\n":
                return False
            i += 1
        return False

    def _skip_template(self) -> None:
        src = self.source
        start = self.pos
        self.pos += 1
        while self.pos < len(src):
            ch = src[self.pos]
            if ch == "\\":
                self.pos += 2
                continue
            if ch == "`":
                self.pos += 1
                return
            if ch == "$" and self._peek(1) == "{":
                self.pos += 1
                self.read_braced()
                continue
            self.pos += 1
        raise CompileError(f"Unterminated template literal at offset {start}")

    # -- tags --

    def read_tag(self) -> Token:
        start = self.pos
        self.pos += 1  # "<"

        if self._peek() == "/":
            self.pos += 1
            self._skip_whitespace()
            name = self._read_name()
            self._skip_whitespace()
            if self._peek() != ">":
                raise CompileError(f"Malformed closing tag at offset {start}")
            self.pos += 1
            return Token("close", name)

        if self._peek() == ">":
            self.pos += 1
            return Token("open", "")

        name = self._read_name()
        attributes: list[Attribute] = []
        while True:
            self._skip_whitespace()
            if self.eof:
                raise CompileError(f"Unterminated tag <{name}> at offset {start}")
            ch = self._peek()
            if ch == "/" and self._peek(1) == ">":
                self.pos += 2
                return Token("open", name, attributes, self_closing=True)
            if ch == ">":
                self.pos += 1
                return Token("open", name, attributes)
            if ch == "{":
                # {...spread} has no HTML equivalent
                self.read_braced()
                continue
            attributes.append(self._read_attribute(name))

    def _read_name(self) -> str:
        match = _NAME_RE.match(self.source, self.pos)
        if not match:
            return ""
        self.pos = match.end()
        return match.group(0)

    def _read_attribute(self, tag: str) -> Attribute:
        match = _ATTR_NAME_RE.match(self.source, self.pos)
        if not match:
            raise CompileError(f"Unexpected {self._peek()!r} inside <{tag}> at offset {self.pos}")
        self.pos = match.end()
        attr_name = match.group(0)

        self._skip_whitespace()
        if self._peek() != "=":
            return Attribute(attr_name)

        self.pos += 1
        self._skip_whitespace()
        ch = self._peek()
        if ch in ("'", '"'):
            end = self.source.find(ch, self.pos + 1)
            if end == -1:
                raise CompileError(f"Unterminated value for {attr_name} in <{tag}>")
            value = self.source[self.pos + 1 : end]
            self.pos = end + 1
            return Attribute(attr_name, value)
        if ch == "{":
            return Attribute(attr_name, self.read_braced(), expression=True)
        raise CompileError(f"Unsupported value for {attr_name} in <{tag}> at offset {self.pos}")

    def element_end(self) -> int:
        """
        Scan one element starting at the current "<" and return the offset
        just past its closing tag.
        """
        depth = 0
        while True:
            token = self.next_token()
            if token is None:
                raise CompileError("Unclosed element at end of input")
            if token.kind == "open":
                if token.self_closing:
                    if depth == 0:
                        return self.pos
                    continue
                depth += 1
            elif token.kind == "close":
                depth -= 1
                if depth <= 0:
                    return self.pos
            elif depth == 0:
                raise CompileError("Expected an element")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def tokenize_jsx(markup: str) -> list[Token]:
    return JSXScanner(markup).tokens()


def string_literal(expression: str) -> str | None:
    """
    Return the text of a simple string-literal expression, or None.
    Template literals count only when they have no ${} placeholders.
    """
    expr = expression.strip()
    if len(expr) < 2 or expr[0] != expr[-1] or expr[0] not in ("'", '"', "`"):
        return None
    quote = expr[0]
    body = expr[1:-1]
    if quote == "`" and "${" in body:
        return None
    # A quote of the same kind must be escaped, otherwise this is two literals
    unescaped = body.replace("\\\\", "").replace("\\" + quote, "")
    if quote in unescaped:
        return None
    return body.replace("\\" + quote, quote).replace("\\\\", "\\")


def strip_boilerplate(source: str) -> str:
    """Drop a leading 'use client' directive and every import statement."""
    text = _USE_CLIENT_RE.sub("", source, count=1)
    return _IMPORT_RE.sub("", text)


def extract_return_jsx(source: str) -> str:
    """
    Find the markup returned by the default-exported component.

    Searches after the `export default function ... {` header when there is
    one, and takes the first `return (<...>)` or `return <...>`. Returns ""
    when the component returns no markup (for example `return null`).
    """
    text = strip_boilerplate(source)
    header = _EXPORT_DEFAULT_FN_RE.search(text)
    search_from = header.end() if header else 0

    for match in _RETURN_RE.finditer(text, search_from):
        i = match.end()
        while i < len(text) and (text[i] == "(" or text[i].isspace()):
            i += 1
        if i >= len(text) or text[i] != "<":
            continue
        end = JSXScanner(text, i).element_end()
        return text[i:end]
    return ""


def _render_attributes(attributes: list[Attribute]) -> str:
    parts: list[str] = []
    for attr in attributes:
        name = ATTRIBUTE_RENAMES.get(attr.name, attr.name)
        value = attr.value
        if attr.expression:
            value = string_literal(value or "")
            if value is None:
                continue
        if value is None:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{value.replace(chr(34), "&quot;")}"')
    return "".join(parts)


def _html_tag(name: str) -> str:
    return COMPONENT_TAGS.get(name, name)


def translate_jsx(markup: str) -> str:
    """Translate a JSX fragment to static HTML."""
    out: list[str] = []
    for token in tokenize_jsx(markup):
        if token.kind == "text":
            out.append(token.value.replace("<", "&lt;"))
        elif token.kind == "expr":
            literal = string_literal(token.value)
            if literal is not None:
                out.append(literal)
        elif token.kind == "open":
            if not token.value:
                continue
            tag = _html_tag(token.value)
            attrs = _render_attributes(token.attributes)
            if not token.self_closing:
                out.append(f"<{tag}{attrs}>")
            elif tag.lower() in VOID_ELEMENTS:
                out.append(f"<{tag}{attrs}>")
            else:
                out.append(f"<{tag}{attrs}></{tag}>")
        elif token.value:
            tag = _html_tag(token.value)
            if tag.lower() not in VOID_ELEMENTS:
                out.append(f"</{tag}>")

    return _WHITESPACE_RE.sub(" ", "".join(out)).strip()


def translate_component(source: str) -> str:
    """Source file of a component → static HTML of what it returns."""
    return translate_jsx(extract_return_jsx(source))
