"""
Field store adapter over the host's post/meta storage.

The host is reached through the narrow `PostStore` protocol (get a post,
get/update one meta value). `InMemoryPostStore` implements it for tests and
local tooling. `FieldStore` layers the typed read/write rules on top.
"""

from __future__ import annotations

import copy
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional, Protocol, Set, Tuple

from .exceptions import ForbiddenError, InvalidObjectError, UpdateFailedError
from .fields import (
    FieldDefinition,
    PostKind,
    Sanitizer,
    ValueType,
    coerce,
    meta_key_for,
    normalize_ids,
    zero_value,
)
from .sanitize import sanitize_title

logger = logging.getLogger(__name__)

EDIT_CAPABILITY = "edit_posts"


@dataclass
class Post:
    id: int
    kind: PostKind
    title: str = ""
    slug: str = ""
    content: str = ""


@dataclass(frozen=True)
class User:
    login: str
    capabilities: FrozenSet[str] = frozenset()

    def can(self, capability: str) -> bool:
        return capability in self.capabilities


class PostStore(Protocol):
    def get_post(self, post_id: int) -> Optional[Post]:
        ...

    def get_meta(self, post_id: int, key: str) -> Any:
        """Stored value, or None when the key was never written."""
        ...

    def update_meta(self, post_id: int, key: str, value: Any) -> bool:
        ...


class InMemoryPostStore:
    """
    Dict-backed `PostStore`.

    Field sets are created implicitly on first write. `fail_writes` makes
    `update_meta` report failure for the listed keys (or every key when it
    contains "*"), to exercise the persistence-failure path.
    """

    def __init__(self) -> None:
        self.posts: Dict[int, Post] = {}
        self.meta: Dict[Tuple[int, str], Any] = {}
        self.fail_writes: Set[str] = set()
        self._ids = itertools.count(1)

    def create_post(
        self,
        kind: PostKind | str,
        title: str = "",
        *,
        slug: Optional[str] = None,
        content: str = "",
        post_id: Optional[int] = None,
    ) -> Post:
        if post_id is None:
            post_id = next(self._ids)
            while post_id in self.posts:
                post_id = next(self._ids)
        post = Post(
            id=post_id,
            kind=PostKind(kind),
            title=title,
            slug=slug if slug is not None else sanitize_title(title, fallback=str(post_id)),
            content=content,
        )
        self.posts[post_id] = post
        return post

    def delete_post(self, post_id: int) -> None:
        self.posts.pop(post_id, None)
        for key in [k for k in self.meta if k[0] == post_id]:
            del self.meta[key]

    def get_post(self, post_id: int) -> Optional[Post]:
        return self.posts.get(post_id)

    def get_meta(self, post_id: int, key: str) -> Any:
        return copy.deepcopy(self.meta.get((post_id, key)))

    def update_meta(self, post_id: int, key: str, value: Any) -> bool:
        if "*" in self.fail_writes or key in self.fail_writes:
            return False
        self.meta[(post_id, key)] = copy.deepcopy(value)
        return True


def _valid_post_id(post_id: Any) -> bool:
    return isinstance(post_id, int) and not isinstance(post_id, bool) and post_id > 0


class FieldStore:
    """
    Typed get/set of single meta fields.

    Reads never raise: missing or malformed values degrade to the type's
    default. Writes raise structured errors from `frmirror.exceptions`.
    """

    def __init__(self, store: PostStore) -> None:
        self.store = store

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def raw(self, post_id: int, meta_key: str) -> Any:
        return self.store.get_meta(post_id, meta_key)

    def get(
        self,
        post_id: int,
        meta_key: str,
        value_type: ValueType = ValueType.STRING,
        default: Any = None,
    ) -> Any:
        return coerce(self.raw(post_id, meta_key), value_type, default)

    def read(self, post_id: int, kind: PostKind | str, definition: FieldDefinition) -> Any:
        meta_key = meta_key_for(kind, definition.key)
        return self.get(post_id, meta_key, definition.value_type, definition.default_value)

    def get_post(self, post_id: int) -> Optional[Post]:
        return self.store.get_post(post_id)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def check_post(self, post_id: Any) -> Post:
        """Resolve a write target or raise InvalidObjectError."""
        post = self.store.get_post(post_id) if _valid_post_id(post_id) else None
        if post is None:
            raise InvalidObjectError(
                status_code=400,
                message="Invalid post object",
                code="invalid_object",
                data={"post_id": post_id},
            )
        return post

    @staticmethod
    def check_capability(user: Optional[User], post: Post) -> None:
        if user is None or not user.can(EDIT_CAPABILITY):
            raise ForbiddenError(
                status_code=403,
                message=f"Sorry, you are not allowed to edit this {post.kind.value}.",
                code="rest_forbidden",
                data={"post_id": post.id},
            )

    def set(
        self,
        post_id: int,
        meta_key: str,
        raw_value: Any,
        value_type: ValueType,
        sanitizer: Sanitizer,
        *,
        user: Optional[User],
    ) -> bool:
        """
        Sanitize and persist one field.

        Raises:
            InvalidObjectError: post_id does not name an existing post
            ForbiddenError: `user` may not edit posts
            UpdateFailedError: the host store reported a failed write
        """
        post = self.check_post(post_id)
        self.check_capability(user, post)

        if raw_value is None or raw_value is False:
            raw_value = zero_value(value_type)

        if value_type is ValueType.ID_LIST:
            if not isinstance(raw_value, (list, tuple)):
                raw_value = []
            value = normalize_ids(sanitizer(list(raw_value)))
        else:
            value = sanitizer(raw_value)

        if not self.store.update_meta(post.id, meta_key, value):
            logger.error("Failed to update %s on post %s", meta_key, post.id)
            raise UpdateFailedError(
                status_code=500,
                message="Failed to update meta field",
                code="update_failed",
                data={"post_id": post.id, "key": meta_key},
            )

        logger.debug("Updated %s on post %s", meta_key, post.id)
        return True

    def write(
        self,
        post_id: int,
        kind: PostKind | str,
        definition: FieldDefinition,
        value: Any,
        *,
        user: Optional[User],
    ) -> bool:
        return self.set(
            post_id,
            meta_key_for(kind, definition.key),
            value,
            definition.value_type,
            definition.sanitizer,
            user=user,
        )
