"""
Block binding resolution.

A block binds one of its attributes (usually ``content``) to a meta field:

    {"blockName": "core/paragraph",
     "attrs": {"metadata": {"bindings": {
         "content": {"source": "fr-mirror/article-meta",
                     "args": {"key": "_article_committee"}}}}}}

`BindingResolver` turns such a binding into the value embedded in the block
at render time. Two article keys are virtual: ``journalist_full_name`` and
``artist_full_name`` follow the article's first related journalist/artist
and render a linked full name.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from .fields import (
    PostKind,
    ValueType,
    is_empty,
    meta_definitions,
    meta_key_for,
)
from .sanitize import esc_html, esc_url, kses_bullet_points, sanitize_title
from .store import FieldStore

logger = logging.getLogger(__name__)

SOURCE_PREFIX = "fr-mirror/"

JOURNALIST_FULL_NAME = "journalist_full_name"
ARTIST_FULL_NAME = "artist_full_name"
VIRTUAL_KEYS = frozenset({JOURNALIST_FULL_NAME, ARTIST_FULL_NAME})

VIEW_COUNT_KEY = "_article_view_count"
BULLET_POINTS_KEY = "_article_bullet_points"


class Namespace(str, enum.Enum):
    ARTICLE_META = "article-meta"
    JOURNALIST_META = "journalist-meta"
    ARTIST_META = "artist-meta"

    @property
    def kind(self) -> PostKind:
        return _NAMESPACE_KINDS[self]

    @property
    def source(self) -> str:
        return SOURCE_PREFIX + self.value

    @classmethod
    def parse(cls, name: str) -> Optional["Namespace"]:
        """Accept ``article-meta`` or the full ``fr-mirror/article-meta`` source."""
        if name.startswith(SOURCE_PREFIX):
            name = name[len(SOURCE_PREFIX):]
        try:
            return cls(name)
        except ValueError:
            return None


_NAMESPACE_KINDS = {
    Namespace.ARTICLE_META: PostKind.ARTICLE,
    Namespace.JOURNALIST_META: PostKind.JOURNALIST,
    Namespace.ARTIST_META: PostKind.ARTIST,
}


@dataclass(frozen=True)
class Binding:
    namespace: Namespace
    key: str
    attribute: str = "content"

    @property
    def source(self) -> str:
        return self.namespace.source

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "args": {"key": self.key}}

    @classmethod
    def from_block(cls, block: Mapping[str, Any], attribute: str = "content") -> Optional["Binding"]:
        """The fr-mirror binding on ``attribute`` of a parsed block, if any."""
        bindings = _block_bindings(block)
        entry = bindings.get(attribute)
        if not isinstance(entry, Mapping):
            return None

        source = entry.get("source") or ""
        if not source.startswith(SOURCE_PREFIX):
            return None
        namespace = Namespace.parse(source)
        if namespace is None:
            return None

        key = (entry.get("args") or {}).get("key") or ""
        return cls(namespace=namespace, key=key, attribute=attribute)

    @classmethod
    def all_from_block(cls, block: Mapping[str, Any]) -> List["Binding"]:
        found = []
        for attribute in _block_bindings(block):
            binding = cls.from_block(block, attribute)
            if binding is not None:
                found.append(binding)
        return found


def _block_bindings(block: Mapping[str, Any]) -> Mapping[str, Any]:
    attrs = block.get("attrs") or {}
    metadata = attrs.get("metadata") or {}
    bindings = metadata.get("bindings") or {}
    return bindings if isinstance(bindings, Mapping) else {}


def _short(value: Any, limit: int = 100) -> str:
    text = value if isinstance(value, str) else repr(value)
    return text[:limit]


class BindingResolver:
    """
    Resolve (namespace, key) bindings against the post being rendered.

    Args:
        field_store: typed access to post meta
        home_url: prefix for generated links ("" gives root-relative links)
        current_post_id: fallback when the block context carries no postId
    """

    def __init__(
        self,
        field_store: FieldStore,
        *,
        home_url: str = "",
        current_post_id: Optional[Callable[[], Optional[int]]] = None,
    ) -> None:
        self.field_store = field_store
        self.home_url = home_url.rstrip("/")
        self.current_post_id = current_post_id

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def resolve(
        self,
        namespace: Namespace | str,
        key: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Any]:
        """
        Value for a bound attribute, or None when nothing can be resolved.

        None means "no value" (missing post id, empty key, foreign namespace);
        an unknown key resolves to "".
        """
        if not isinstance(namespace, Namespace):
            namespace = Namespace.parse(namespace)
            if namespace is None:
                return None

        post_id = self._post_id(context)
        if not post_id:
            logger.debug("Block binding: no post ID found. Context: %r", context)
            return None

        if not key:
            return None

        if namespace is Namespace.ARTICLE_META and key == JOURNALIST_FULL_NAME:
            return self.journalist_full_name(post_id)
        if namespace is Namespace.ARTICLE_META and key == ARTIST_FULL_NAME:
            return self.artist_full_name(post_id)

        meta_key = meta_key_for(namespace.kind, key)
        if meta_key not in meta_definitions(namespace.kind):
            logger.debug("Block binding: unknown key %r for %s", key, namespace.value)
            return ""

        value = self.field_store.raw(post_id, meta_key)
        logger.debug(
            "Block binding: post ID %s, meta key: %s, value: %s",
            post_id, meta_key, _short(value),
        )

        if is_empty(value):
            return "0" if meta_key == VIEW_COUNT_KEY else ""

        if meta_key == BULLET_POINTS_KEY:
            return kses_bullet_points(value)

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def resolve_binding(
        self, binding: Binding, context: Optional[Mapping[str, Any]] = None
    ) -> Optional[Any]:
        return self.resolve(binding.namespace, binding.key, context)

    def resolve_block(
        self, block: Mapping[str, Any], context: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Attribute overrides for every fr-mirror binding on a parsed block.

        Attributes resolving to None are left out so the block keeps its own
        value for them.
        """
        if context is None:
            context = block.get("context") or {}
        overrides: Dict[str, Any] = {}
        for binding in Binding.all_from_block(block):
            value = self.resolve_binding(binding, context)
            if value is not None:
                overrides[binding.attribute] = value
        return overrides

    # ------------------------------------------------------------------ #
    # Virtual fields
    # ------------------------------------------------------------------ #

    def journalist_full_name(self, article_id: int) -> str:
        """
        Linked name of the article's first journalist.

        The link path is built from the name itself: "Ada Lovelace" links to
        ``/ada-lovelace/``.
        """
        journalist_id = self._first_related(article_id, "_article_journalists")
        if journalist_id is None:
            return ""

        full_name = self._full_name(journalist_id, PostKind.JOURNALIST)
        if not full_name:
            return ""

        url = self._home(f"/{sanitize_title(full_name)}/")
        return f'<a href="{esc_url(url)}">{esc_html(full_name)}</a>'

    def artist_full_name(self, article_id: int) -> str:
        """
        Linked name of the article's first artist.

        Unlike journalists, the link uses the artist post's stored slug:
        ``/artist/{slug}/``. When the artist post no longer exists the
        escaped name is returned without a link.
        """
        artist_id = self._first_related(article_id, "_article_artists")
        if artist_id is None:
            return ""

        full_name = self._full_name(artist_id, PostKind.ARTIST)
        if not full_name:
            return ""

        artist = self.field_store.get_post(artist_id)
        if artist is None:
            return esc_html(full_name)

        url = self._home(f"/artist/{artist.slug}/")
        return f'<a href="{esc_url(url)}">{esc_html(full_name)}</a>'

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _post_id(self, context: Optional[Mapping[str, Any]]) -> Optional[int]:
        post_id = (context or {}).get("postId")
        if not post_id and self.current_post_id is not None:
            post_id = self.current_post_id()
        return post_id or None

    def _first_related(self, article_id: int, meta_key: str) -> Optional[int]:
        ids = self.field_store.get(article_id, meta_key, ValueType.ID_LIST)
        return ids[0] if ids else None

    def _full_name(self, post_id: int, kind: PostKind) -> str:
        first = self.field_store.get(post_id, meta_key_for(kind, "first_name"))
        last = self.field_store.get(post_id, meta_key_for(kind, "last_name"))
        return f"{first} {last}".strip()

    def _home(self, path: str) -> str:
        return f"{self.home_url}{path}"
