"""
Field registry for the Article, Journalist and Artist post kinds.

Adding a field is adding a row to one of the tables below; the store
adapter, REST controller, binding resolver and editor mirror all read
these definitions.
"""

from __future__ import annotations

import enum
import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from . import sanitize as s


class PostKind(str, enum.Enum):
    ARTICLE = "article"
    JOURNALIST = "journalist"
    ARTIST = "artist"


class ValueType(str, enum.Enum):
    STRING = "string"
    INTEGER = "integer"
    ID_LIST = "id_list"


Sanitizer = Callable[[Any], Any]


def _identity(value: Any) -> Any:
    return value


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

_INT_RE = re.compile(r"^\s*([+-]?\d+)(?:\.\d*)?\s*$")


def zero_value(value_type: ValueType) -> Any:
    if value_type is ValueType.INTEGER:
        return 0
    if value_type is ValueType.ID_LIST:
        return []
    return ""


def is_empty(raw: Any) -> bool:
    return raw is None or raw is False or raw == "" or raw == []


def coerce_string(raw: Any, default: str = "") -> str:
    if is_empty(raw):
        return default
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return str(raw)
    return default


def _to_int(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if math.isfinite(raw) else None
    if isinstance(raw, str):
        # Integer part only, so long digit strings stay exact
        match = _INT_RE.match(raw)
        if match is None:
            return None
        try:
            return int(match.group(1))
        except ValueError:
            # Past the interpreter's int string conversion limit
            return None
    return None


def coerce_integer(raw: Any, default: int = 0) -> int:
    """Truncate to int; missing, non-numeric or negative values give ``default``."""
    value = _to_int(raw)
    if value is None or value < 0:
        return default
    return value


def normalize_ids(values: Any) -> List[int]:
    """Positive integer ids, deduplicated, first occurrence order kept."""
    ids: List[int] = []
    for item in values or []:
        value = _to_int(item)
        if value is None or value <= 0 or value in ids:
            continue
        ids.append(value)
    return ids


def coerce_id_list(raw: Any) -> List[int]:
    """
    Materialize an id list from a stored value.

    Lists are normalized directly; strings are treated as a legacy
    JSON-encoded array. Anything unparseable becomes an empty list.
    """
    if is_empty(raw):
        return []
    if isinstance(raw, (list, tuple)):
        return normalize_ids(raw)
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return []
        if isinstance(parsed, list):
            return normalize_ids(parsed)
    return []


def coerce(raw: Any, value_type: ValueType, default: Any = None) -> Any:
    if default is None:
        default = zero_value(value_type)
    if value_type is ValueType.INTEGER:
        return coerce_integer(raw, default)
    if value_type is ValueType.ID_LIST:
        return coerce_id_list(raw) or list(default)
    return coerce_string(raw, default)


@dataclass(frozen=True)
class FieldDefinition:
    key: str
    value_type: ValueType = ValueType.STRING
    sanitizer: Sanitizer = field(default=s.sanitize_text_field, compare=False)
    label: str = ""
    default: Any = None

    def __post_init__(self) -> None:
        if self.default is None and self.value_type is not ValueType.ID_LIST:
            object.__setattr__(self, "default", zero_value(self.value_type))

    @property
    def default_value(self) -> Any:
        # Lists are handed out fresh so callers can't mutate the definition
        if self.value_type is ValueType.ID_LIST:
            return list(self.default or [])
        return self.default


# ---------------------------------------------------------------------------
# Field tables
# ---------------------------------------------------------------------------

ARTICLE_FIELDS: List[FieldDefinition] = [
    FieldDefinition("_article_journalists", ValueType.ID_LIST, _identity, "Journalists"),
    FieldDefinition("_article_artists", ValueType.ID_LIST, _identity, "Artists"),
    FieldDefinition("_article_content", ValueType.STRING, s.kses_post, "Content"),
    FieldDefinition("_article_committee", ValueType.STRING, s.sanitize_text_field, "Committee"),
    FieldDefinition("_article_youtube_id", ValueType.STRING, s.sanitize_text_field, "YouTube ID"),
    FieldDefinition("_article_bullet_points", ValueType.STRING, s.sanitize_textarea_field, "Bullet Points"),
    FieldDefinition("_article_meeting_date", ValueType.STRING, s.sanitize_text_field, "Meeting Date"),
    FieldDefinition("_article_view_count", ValueType.INTEGER, s.absint, "View Count"),
]

# Bare names; the stored key is composed with the kind prefix
JOURNALIST_FIELDS: List[FieldDefinition] = [
    FieldDefinition("first_name", label="First Name"),
    FieldDefinition("last_name", label="Last Name"),
    FieldDefinition("email", sanitizer=s.sanitize_email, label="Email"),
    FieldDefinition("phone", label="Phone"),
    FieldDefinition("title", label="Title/Position"),
    FieldDefinition("twitter", label="Twitter/X"),
    FieldDefinition("linkedin", sanitizer=s.esc_url_raw, label="LinkedIn"),
    FieldDefinition("bio_short", sanitizer=s.sanitize_textarea_field, label="Short Bio"),
]

ARTIST_FIELDS: List[FieldDefinition] = [
    FieldDefinition("first_name", label="First Name"),
    FieldDefinition("last_name", label="Last Name"),
    FieldDefinition("title", label="Title/Position"),
    FieldDefinition("email", sanitizer=s.sanitize_email, label="Email"),
    FieldDefinition("website", sanitizer=s.esc_url_raw, label="Website"),
    FieldDefinition("instagram", label="Instagram"),
    FieldDefinition("bio_short", sanitizer=s.sanitize_textarea_field, label="Short Bio"),
]

_REGISTRY: Dict[PostKind, List[FieldDefinition]] = {
    PostKind.ARTICLE: ARTICLE_FIELDS,
    PostKind.JOURNALIST: JOURNALIST_FIELDS,
    PostKind.ARTIST: ARTIST_FIELDS,
}

# Kinds whose registry keys are bare names
_KEY_PREFIXES: Dict[PostKind, str] = {
    PostKind.JOURNALIST: "_journalist_",
    PostKind.ARTIST: "_artist_",
}


def definitions_for(kind: PostKind | str) -> List[FieldDefinition]:
    """Ordered field definitions for a post kind. Unknown kinds raise ValueError."""
    return list(_REGISTRY[PostKind(kind)])


def key_prefix(kind: PostKind | str) -> str:
    return _KEY_PREFIXES.get(PostKind(kind), "")


def meta_key_for(kind: PostKind | str, field_key: str) -> str:
    """
    Stored meta key for a registry key.

    Article keys are already fully qualified; Journalist/Artist keys get
    their kind prefix: ``meta_key_for("journalist", "email")`` is
    ``"_journalist_email"``.
    """
    return key_prefix(kind) + field_key


def meta_definitions(kind: PostKind | str) -> Dict[str, FieldDefinition]:
    """Field definitions keyed by their stored meta key, in registry order."""
    return {meta_key_for(kind, d.key): d for d in definitions_for(kind)}


def definition_for(kind: PostKind | str, meta_key: str) -> Optional[FieldDefinition]:
    return meta_definitions(kind).get(meta_key)

