"""Text cleanup shared by the normalizers: encoding, markup, truncation."""
from __future__ import annotations

import re
import warnings

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

_BLOCK_TAGS: tuple[str, ...] = ("br", "p", "div", "h1", "h2", "h3", "h4", "li", "tr", "ul", "ol")
_SPACES = re.compile(r"[ \t\r\f\v\u00a0]+")
_BLANK_LINES = re.compile(r"\n\s*\n+")


def sanitize_text(value: str | bytes | None) -> str:
    """Return *value* as valid UTF-8 text.

    Undecodable bytes and lone surrogates become U+FFFD; NUL characters
    are dropped because the database rejects them.
    """
    if value is None:
        return ""
    if isinstance(value, bytes):
        text = value.decode("utf-8", errors="replace")
    else:
        text = str(value)
        try:
            text.encode("utf-8")
        except UnicodeEncodeError:
            text = text.encode("utf-8", errors="surrogatepass").decode("utf-8", errors="replace")
    return text.replace("\x00", "")


def strip_html(markup: str) -> str:
    """Plain text from an HTML fragment; block elements become line breaks."""
    if not markup:
        return ""
    if "<" not in markup and "&" not in markup:
        return normalize_whitespace(markup)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    for tag in soup.find_all(list(_BLOCK_TAGS)):
        tag.insert_before("\n")
    return normalize_whitespace(soup.get_text())


def normalize_whitespace(text: str) -> str:
    """Collapse runs of spaces per line and squeeze blank lines."""
    lines = [_SPACES.sub(" ", line).strip() for line in text.split("\n")]
    return _BLANK_LINES.sub("\n", "\n".join(lines)).strip()


def truncate_utf8(text: str, max_bytes: int) -> str:
    """Cut *text* to at most *max_bytes* UTF-8 bytes on a character boundary."""
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore")
