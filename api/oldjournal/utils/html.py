"""HTML sanitization for user-supplied entry, comment and bio bodies."""

from __future__ import annotations

from urllib.parse import urlparse

from bs4 import BeautifulSoup, Comment

ALLOWED_TAGS = frozenset({"b", "i", "u", "a", "p", "br", "strong", "em"})
ALLOWED_ATTRIBUTES: dict[str, frozenset[str]] = {"a": frozenset({"href", "title"})}
ALLOWED_URL_SCHEMES = frozenset({"", "http", "https", "mailto"})

# Removed together with their content; every other disallowed tag is unwrapped.
DROP_WITH_CONTENT = frozenset({"script", "style", "iframe", "object", "embed", "template", "noscript"})


def _is_safe_url(value: str) -> bool:
    try:
        scheme = urlparse(value.strip()).scheme.lower()
    except ValueError:
        return False
    return scheme in ALLOWED_URL_SCHEMES


def sanitize_html(html: str | None) -> str:
    """
    Reduce HTML to a small allow-list of inline formatting tags.

    Disallowed tags are unwrapped (their text is kept), script-like tags are
    dropped with their content, and links keep only safe href/title values.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for node in soup.find_all(string=lambda text: isinstance(text, Comment)):
        node.extract()

    for tag in soup.find_all(True):
        if tag.decomposed:
            continue
        if tag.name in DROP_WITH_CONTENT:
            tag.decompose()
            continue
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue

        allowed = ALLOWED_ATTRIBUTES.get(tag.name, frozenset())
        tag.attrs = {name: value for name, value in tag.attrs.items() if name in allowed}
        if "href" in tag.attrs and not _is_safe_url(tag.attrs["href"]):
            del tag.attrs["href"]

    return str(soup).strip()
