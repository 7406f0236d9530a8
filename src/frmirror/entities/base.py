# entities/base.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Generic, List, Optional, Set, TypeVar, TYPE_CHECKING

from ..fields import PostKind, ValueType, coerce, meta_definitions

if TYPE_CHECKING:
    from ..client import Client


T = TypeVar("T")

# Keys the API computes; never sent back on save
READ_ONLY_KEYS = {"id", "date", "date_gmt", "modified", "modified_gmt", "link", "guid", "type", "_links"}


class Field(Generic[T]):
    """
    Descriptor for a top-level key of the post payload.

    Example:
        slug: str = Field("slug", default="")
    """

    dirty_set = "_dirty_fields"

    def __init__(self, key: Optional[str] = None, *, default: Optional[T] = None, read_only: bool = False) -> None:
        self.key = key
        self.default = default
        self.read_only = read_only

    def __set_name__(self, owner, name: str) -> None:
        self.key = self.key or name

    def _container(self, instance) -> Dict[str, Any]:
        return instance.data

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return self._container(instance).get(self.key, self.default)

    def __set__(self, instance, value: T) -> None:
        if self.read_only:
            raise AttributeError(f"{type(instance).__name__}.{self.key} is read-only")

        self._container(instance)[self.key] = value
        getattr(instance, self.dirty_set).add(self.key)

        if instance.sync:
            instance.save(only_dirty=True)


class MetaField(Field[T]):
    """
    Descriptor for one key of `entity.data["meta"]`.

    Reads apply the same coercion as the server-side field store, so a
    missing view count reads as 0 and a legacy string id list as a list.

    Example:
        view_count: int = MetaField("_article_view_count", ValueType.INTEGER)
    """

    dirty_set = "_dirty_meta"

    def __init__(self, key: str, value_type: ValueType = ValueType.STRING, *, read_only: bool = False) -> None:
        super().__init__(key, read_only=read_only)
        self.value_type = value_type

    def _container(self, instance) -> Dict[str, Any]:
        meta = instance.data.get("meta")
        if not isinstance(meta, dict):
            meta = instance.data["meta"] = {}
        return meta

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return coerce(self._container(instance).get(self.key), self.value_type)


@dataclass
class BaseEntity:
    """
    One post, as returned by ``GET /<ENDPOINT>/<id>?context=edit``.

    Subclasses set ENDPOINT (REST base, e.g. "article") and KIND.
    With ``sync`` on, every descriptor assignment is saved right away.
    """

    client: "Client"
    data: Dict[str, Any] = field(default_factory=dict)

    sync: bool = field(default=True, repr=False, compare=False)

    _dirty_fields: Set[str] = field(default_factory=set, repr=False, compare=False)
    _dirty_meta: Set[str] = field(default_factory=set, repr=False, compare=False)

    ENDPOINT: ClassVar[str] = ""
    KIND: ClassVar[PostKind] = PostKind.ARTICLE

    # Unannotated so the dataclass machinery leaves them alone
    id = Field("id", read_only=True)
    slug = Field("slug", default="")
    status = Field("status", default="draft")

    @property
    def path(self) -> str:
        return f"{self.ENDPOINT}/{self.id}"

    @property
    def title(self) -> str:
        """Raw title in edit context, rendered title otherwise."""
        title = self.data.get("title")
        if isinstance(title, dict):
            return title.get("raw") or title.get("rendered") or ""
        return title or ""

    @title.setter
    def title(self, value: str) -> None:
        self.data["title"] = value
        self._dirty_fields.add("title")
        if self.sync:
            self.save(only_dirty=True)

    @property
    def meta(self) -> Dict[str, Any]:
        """Every defined field of this kind, coerced (missing ones defaulted)."""
        raw = self.data.get("meta") or {}
        return {
            key: coerce(raw.get(key), d.value_type, d.default_value)
            for key, d in meta_definitions(self.KIND).items()
        }

    # ------------------------------------------------------------------ #
    # Loading / creating
    # ------------------------------------------------------------------ #

    @classmethod
    def get(cls, client: "Client", post_id: int) -> "BaseEntity":
        resp = client.get(f"{cls.ENDPOINT}/{post_id}", context="edit")
        return cls(client=client, data=resp.json())

    @classmethod
    def get_by_slug(cls, client: "Client", slug: str) -> "BaseEntity":
        resp = client.get(cls.ENDPOINT, slug=slug.strip("/"), context="edit")
        found = resp.json()
        if not found:
            raise KeyError(f"No {cls.ENDPOINT} with slug {slug!r}")
        return cls(client=client, data=found[0])

    @classmethod
    def create(
        cls,
        client: "Client",
        *,
        title: str,
        meta: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ) -> "BaseEntity":
        payload: Dict[str, Any] = {"title": title, **fields}
        if meta:
            payload["meta"] = meta
        resp = client.post(cls.ENDPOINT, json=payload)
        return cls(client=client, data=resp.json())

    # ------------------------------------------------------------------ #
    # Syncing
    # ------------------------------------------------------------------ #

    def _replace(self, data: Dict[str, Any]) -> None:
        self.data = data
        self._dirty_fields.clear()
        self._dirty_meta.clear()

    def refresh(self) -> None:
        self._replace(self.client.get(self.path, context="edit").json())

    def _dirty_body(self) -> Dict[str, Any]:
        body = {k: self.data[k] for k in self._dirty_fields if k in self.data}
        meta = self.data.get("meta") or {}
        changed = {k: meta[k] for k in self._dirty_meta if k in meta}
        if changed:
            body["meta"] = changed
        return body

    def _full_body(self) -> Dict[str, Any]:
        # Rendered/raw dicts (content, excerpt, ...) are not writable as-is
        body = {
            k: v
            for k, v in self.data.items()
            if k not in READ_ONLY_KEYS and not isinstance(v, dict)
        }
        body["title"] = self.title
        body["meta"] = self.meta
        return body

    def save(self, *, only_dirty: bool = False) -> None:
        """
        POST local changes back to the post.

        ``only_dirty`` sends just what was assigned through descriptors;
        otherwise the writable payload and the complete field set go out.
        """
        body = self._dirty_body() if only_dirty else self._full_body()
        if not body:
            return
        self._replace(self.client.post(self.path, json=body).json())

    def delete(self, *, force: bool = False) -> None:
        """Trash the post, or delete it permanently with ``force``."""
        if force:
            self.client.delete(self.path, force="true")
        else:
            self.client.delete(self.path)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.data.get('id')} slug='{self.slug}'>"

    def __str__(self) -> str:
        name = type(self).__name__
        if self.title:
            return f"{name}(id={self.data.get('id')}, title='{self.title}')"
        return f"{name}(id={self.data.get('id')})"


class BaseCollectionProxy:
    """
    Indexable / sliceable view over the posts of one kind.

    ``_index`` caches ``{"id", "slug"}`` pairs for the first page (sorted
    by title) and backs len(), iteration, slug lookup and completion.
    Entities themselves are fetched on access.
    """

    ENTITY_CLS: ClassVar[type[BaseEntity]] = BaseEntity
    ENDPOINT: ClassVar[str] = ""
    DEFAULT_PAGE_SIZE: ClassVar[int] = 100  # the API's per_page maximum

    def __init__(self, client: "Client") -> None:
        self.client = client
        self._index: Optional[List[Dict[str, Any]]] = None

    # ------------------------------------------------------------------ #
    # Index
    # ------------------------------------------------------------------ #

    def _fetch_index(self, *, limit: int, offset: int = 0) -> List[Dict[str, Any]]:
        resp = self.client.get(
            self.ENDPOINT,
            per_page=limit,
            offset=offset,
            orderby="title",
            order="asc",
            _fields="id,slug",
        )
        payload = resp.json()
        if not isinstance(payload, list):
            raise ValueError(f"Unexpected list endpoint format: {payload!r}")
        return [{"id": item["id"], "slug": item.get("slug", "")} for item in payload]

    def _ensure_index(self) -> List[Dict[str, Any]]:
        if self._index is None:
            self._index = self._fetch_index(limit=self.DEFAULT_PAGE_SIZE)
        return self._index

    def _get_entity(self, post_id: int) -> BaseEntity:
        return self.ENTITY_CLS.get(self.client, post_id)

    # ------------------------------------------------------------------ #
    # Lookups
    # ------------------------------------------------------------------ #

    def _by_slice(self, key: slice) -> List[BaseEntity]:
        if key.step not in (None, 1):
            raise ValueError("Step other than 1 is not supported for slices.")
        if key.stop is None:
            raise ValueError("Open-ended slices are not supported; specify stop.")

        start = key.start or 0
        if key.stop <= start:
            return []
        page = self._fetch_index(limit=key.stop - start, offset=start)
        return [self._get_entity(item["id"]) for item in page]

    def _by_slug(self, text: str):
        """Exact slug match, else the post(s) whose slug contains ``text``."""
        text = text.strip("/")
        index = self._ensure_index()

        exact = [item for item in index if item["slug"] == text]
        if exact:
            return self._get_entity(exact[0]["id"])

        needle = text.lower()
        matches = [item for item in index if needle in item["slug"].lower()]
        if not matches:
            raise KeyError(f"No {self.ENDPOINT} matching {text!r}")
        if len(matches) == 1:
            return self._get_entity(matches[0]["id"])
        return [self._get_entity(item["id"]) for item in matches]

    def __getitem__(self, key):
        """
        proxy[0]        entity by position in the index
        proxy[1:10]     entities, paged with per_page/offset
        proxy["slug"]   entity by slug, or substring matches
        """
        if isinstance(key, int):
            return self._get_entity(self._ensure_index()[key]["id"])
        if isinstance(key, slice):
            return self._by_slice(key)
        if isinstance(key, str):
            return self._by_slug(key)
        raise TypeError(f"Unsupported key type: {type(key)!r}")

    def __len__(self) -> int:
        return len(self._ensure_index())

    def __iter__(self):
        # One request per entity
        for item in self._ensure_index():
            yield self._get_entity(item["id"])

    def create(self, *, title: str, **fields: Any) -> BaseEntity:
        """Create a post of this kind and add it to the cached index."""
        entity = self.ENTITY_CLS.create(self.client, title=title, **fields)
        if self._index is not None:
            self._index.append({"id": entity.data["id"], "slug": entity.data.get("slug", "")})
        return entity

    def slugs(self) -> List[str]:
        return [item["slug"] for item in self._ensure_index()]

    def _ipython_key_completions_(self):
        try:
            return self.slugs()
        except Exception:
            return []
