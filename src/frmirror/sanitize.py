"""
Sanitizers and escapers applied to meta field values.

These follow the behaviour of the host CMS functions the field tables name
(``sanitize_text_field``, ``sanitize_email``, ``wp_kses`` ...), closely enough
that a value sanitized here is stored the same way the host would store it.
"""

from __future__ import annotations

import html
import math
import re
import unicodedata
from typing import Any, Dict, Iterable, Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Comment

# Tag -> allowed attribute names
AllowedHtml = Dict[str, Iterable[str]]


BULLET_POINTS_ALLOWED_HTML: AllowedHtml = {
    "ul": ("class", "id"),
    "li": ("class", "id"),
    "strong": (),
    "em": (),
}

_GLOBAL_POST_ATTRS = ("class", "id", "style", "title", "lang", "dir", "role")

POST_ALLOWED_HTML: AllowedHtml = {
    "a": _GLOBAL_POST_ATTRS + ("href", "rel", "target", "name"),
    "abbr": _GLOBAL_POST_ATTRS,
    "b": _GLOBAL_POST_ATTRS,
    "blockquote": _GLOBAL_POST_ATTRS + ("cite",),
    "br": (),
    "caption": _GLOBAL_POST_ATTRS,
    "cite": _GLOBAL_POST_ATTRS,
    "code": _GLOBAL_POST_ATTRS,
    "del": _GLOBAL_POST_ATTRS + ("datetime",),
    "div": _GLOBAL_POST_ATTRS,
    "em": _GLOBAL_POST_ATTRS,
    "figcaption": _GLOBAL_POST_ATTRS,
    "figure": _GLOBAL_POST_ATTRS,
    "h1": _GLOBAL_POST_ATTRS,
    "h2": _GLOBAL_POST_ATTRS,
    "h3": _GLOBAL_POST_ATTRS,
    "h4": _GLOBAL_POST_ATTRS,
    "h5": _GLOBAL_POST_ATTRS,
    "h6": _GLOBAL_POST_ATTRS,
    "hr": _GLOBAL_POST_ATTRS,
    "i": _GLOBAL_POST_ATTRS,
    "img": _GLOBAL_POST_ATTRS + ("alt", "src", "srcset", "sizes", "width", "height", "loading"),
    "ins": _GLOBAL_POST_ATTRS + ("datetime",),
    "li": _GLOBAL_POST_ATTRS,
    "ol": _GLOBAL_POST_ATTRS + ("start", "reversed", "type"),
    "p": _GLOBAL_POST_ATTRS,
    "pre": _GLOBAL_POST_ATTRS,
    "q": _GLOBAL_POST_ATTRS + ("cite",),
    "s": _GLOBAL_POST_ATTRS,
    "small": _GLOBAL_POST_ATTRS,
    "span": _GLOBAL_POST_ATTRS,
    "strong": _GLOBAL_POST_ATTRS,
    "sub": _GLOBAL_POST_ATTRS,
    "sup": _GLOBAL_POST_ATTRS,
    "table": _GLOBAL_POST_ATTRS,
    "tbody": _GLOBAL_POST_ATTRS,
    "td": _GLOBAL_POST_ATTRS + ("colspan", "rowspan"),
    "tfoot": _GLOBAL_POST_ATTRS,
    "th": _GLOBAL_POST_ATTRS + ("colspan", "rowspan", "scope"),
    "thead": _GLOBAL_POST_ATTRS,
    "tr": _GLOBAL_POST_ATTRS,
    "u": _GLOBAL_POST_ATTRS,
    "ul": _GLOBAL_POST_ATTRS,
}

# Dropped together with their content instead of being unwrapped
_DROP_WITH_CONTENT = {"script", "style"}

ALLOWED_PROTOCOLS = (
    "http", "https", "ftp", "ftps", "mailto", "news", "irc", "irc6", "ircs",
    "gopher", "nntp", "feed", "telnet", "mms", "rtsp", "sms", "svn", "tel",
    "fax", "xmpp", "webcal", "urn",
)

_URL_ATTRS = {"href", "src", "cite"}

_TAG_RE = re.compile(r"<[^>]*?>")
_SCRIPT_STYLE_RE = re.compile(r"<(script|style)[^>]*?>.*?</\1>", re.IGNORECASE | re.DOTALL)
_OCTET_RE = re.compile(r"%[a-fA-F0-9]{2}")
_INT_PREFIX_RE = re.compile(r"^\s*([+-]?\d+)")


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


def strip_all_tags(text: str, remove_breaks: bool = False) -> str:
    """Remove every HTML tag, including script/style blocks with their content."""
    text = _SCRIPT_STYLE_RE.sub("", text)
    text = _TAG_RE.sub("", text)
    if remove_breaks:
        text = re.sub(r"[\r\n\t ]+", " ", text)
    return text.strip()


def _sanitize_text(value: Any, keep_newlines: bool) -> str:
    if value is None or value is False:
        return ""
    text = str(value)

    if "<" in text:
        # Lone "<" that does not open a tag must survive as text
        text = re.sub(r"<(?=[^a-zA-Z/!?])", "&lt;", text)
        text = strip_all_tags(text, remove_breaks=False)

    if not keep_newlines:
        text = re.sub(r"[\r\n\t ]+", " ", text)
    else:
        text = re.sub(r"[\t ]+", " ", text)

    # Percent-encoded octets are stripped like the host does
    while _OCTET_RE.search(text):
        text = _OCTET_RE.sub("", text)

    return text.strip()


def sanitize_text_field(value: Any) -> str:
    """Single-line plain text: tags, line breaks, tabs and octets removed."""
    return _sanitize_text(value, keep_newlines=False)


def sanitize_textarea_field(value: Any) -> str:
    """Like :func:`sanitize_text_field` but line breaks are preserved."""
    return _sanitize_text(value, keep_newlines=True)


_EMAIL_LOCAL_RE = re.compile(r"[^a-zA-Z0-9!#$%&'*+/=?^_`{|}~.-]")
_EMAIL_SUB_RE = re.compile(r"[^a-z0-9-]+")


def sanitize_email(value: Any) -> str:
    """Return a cleaned email address, or "" when it cannot be made valid."""
    if value is None or value is False:
        return ""
    email = str(value).strip()

    if len(email) < 6 or email.count("@") < 1:
        return ""

    local, _, domain = email.partition("@")
    local = _EMAIL_LOCAL_RE.sub("", local)
    if not local:
        return ""

    domain = re.sub(r"\.{2,}", "", domain).strip(" \t\n\r\0\x0B.")
    if not domain:
        return ""

    subs = domain.split(".")
    if len(subs) < 2:
        return ""

    cleaned = []
    for sub in subs:
        sub = _EMAIL_SUB_RE.sub("", sub.lower()).strip("-")
        if sub:
            cleaned.append(sub)
    if len(cleaned) < 2:
        return ""

    return f"{local}@{'.'.join(cleaned)}"


def esc_url_raw(value: Any, protocols: Iterable[str] = ALLOWED_PROTOCOLS) -> str:
    """Clean a URL for storage. Disallowed schemes (``javascript:`` ...) give ""."""
    if value is None or value is False:
        return ""
    url = str(value).strip().replace(" ", "%20")
    if not url:
        return ""

    url = re.sub(r"[^a-zA-Z0-9\-~+_.?#=!&;,/:%@$|*'()\[\]\u0080-\uffff]", "", url)
    if not url:
        return ""

    scheme = urlsplit(url).scheme.lower() if ":" in url else ""
    if scheme:
        if scheme not in protocols:
            return ""
        return url

    if url[0] in "/#?" or url.startswith("."):
        return url

    if "." in url.split("/", 1)[0]:
        return f"http://{url}"

    return url


def absint(value: Any) -> int:
    """Absolute integer value; anything non-numeric becomes 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return abs(value)
    if isinstance(value, float):
        return abs(int(value)) if math.isfinite(value) else 0
    if value is None:
        return 0
    match = _INT_PREFIX_RE.match(str(value))
    if match is None:
        return 0
    try:
        return abs(int(match.group(1)))
    except ValueError:
        return 0


# ---------------------------------------------------------------------------
# HTML allow-lists
# ---------------------------------------------------------------------------


def _safe_url(value: str) -> bool:
    return esc_url_raw(value) != "" or value.strip() == ""


def kses(value: Any, allowed: AllowedHtml) -> str:
    """
    Reduce ``value`` to the tags and attributes listed in ``allowed``.

    Disallowed tags are unwrapped (their text is kept), except script/style
    blocks, which are dropped entirely. Comments are removed. URL-valued
    attributes with a disallowed scheme are removed.
    """
    if value is None or value is False:
        return ""
    text = str(value)
    if "<" not in text:
        return text

    soup = BeautifulSoup(text, "html.parser")

    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    for tag in soup.find_all(list(_DROP_WITH_CONTENT)):
        tag.decompose()

    for tag in soup.find_all(True):
        name = tag.name.lower()
        if name not in allowed:
            tag.unwrap()
            continue

        permitted = set(allowed[name])
        for attr in list(tag.attrs):
            attr_name = attr.lower()
            if attr_name not in permitted:
                del tag[attr]
                continue
            if attr_name in _URL_ATTRS and not _safe_url(str(tag[attr])):
                del tag[attr]

    return str(soup)


def kses_post(value: Any) -> str:
    """Allow-list suitable for article body HTML."""
    return kses(value, POST_ALLOWED_HTML)


def kses_bullet_points(value: Any) -> str:
    return kses(value, BULLET_POINTS_ALLOWED_HTML)


# ---------------------------------------------------------------------------
# Slugs / escaping
# ---------------------------------------------------------------------------


def remove_accents(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def sanitize_title(title: Any, fallback: Optional[str] = None) -> str:
    """
    URL slug for a title: "Ada Lovelace" -> "ada-lovelace".

    Accents are folded, tags and entities dropped, anything that is not a
    lowercase letter, digit, underscore or hyphen becomes a hyphen, and runs
    of hyphens collapse.
    """
    if title is None:
        title = ""
    slug = strip_all_tags(str(title))
    slug = remove_accents(slug).lower()
    slug = re.sub(r"&.+?;", "", slug)
    slug = slug.replace(".", "-")
    slug = re.sub(r"[^a-z0-9 _-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug).strip("-")

    if not slug and fallback is not None:
        return fallback
    return slug


def esc_html(value: Any) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def esc_url(value: Any) -> str:
    """Clean a URL and escape it for use in an HTML attribute."""
    return html.escape(esc_url_raw(value), quote=True)
