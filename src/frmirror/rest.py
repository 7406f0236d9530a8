"""
Server side of the REST meta-field contract.

`fetch_snapshot` answers the editor's ``GET /<kind>/<id>?context=edit``
with every defined field; `update_fields` applies a ``{"meta": {...}}`` save
one field at a time and reports an aggregate result.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from .exceptions import APIError, InvalidObjectError
from .fields import PostKind, meta_definitions
from .store import FieldStore, User

logger = logging.getLogger(__name__)


class MetaFieldsController:
    def __init__(self, field_store: FieldStore) -> None:
        self.field_store = field_store

    def _check_kind(self, post_id: Any, kind: PostKind) -> None:
        post = self.field_store.check_post(post_id)
        if post.kind is not kind:
            raise InvalidObjectError(
                status_code=400,
                message=f"Post {post_id} is not a {kind.value}",
                code="invalid_object",
                data={"post_id": post_id},
            )

    def fetch_snapshot(self, kind: PostKind | str, post_id: int) -> Dict[str, Any]:
        """Post summary plus the typed value of every defined field."""
        kind = PostKind(kind)
        self._check_kind(post_id, kind)
        post = self.field_store.get_post(post_id)

        meta = {
            meta_key: self.field_store.get(
                post_id, meta_key, definition.value_type, definition.default_value
            )
            for meta_key, definition in meta_definitions(kind).items()
        }
        return {"id": post.id, "type": kind.value, "slug": post.slug, "meta": meta}

    def update_fields(
        self,
        kind: PostKind | str,
        post_id: Any,
        fields: Mapping[str, Any],
        *,
        user: Optional[User],
    ) -> Dict[str, Any]:
        """
        Save a batch of meta fields, one `FieldStore.set` per field.

        Invalid post identity and missing capability are raised before any
        write. Per-field write failures are logged and reported as one
        aggregate failure; fields written before a failure stay written.
        """
        kind = PostKind(kind)
        self._check_kind(post_id, kind)
        self.field_store.check_capability(user, self.field_store.get_post(post_id))

        definitions = meta_definitions(kind)
        failed: Dict[str, APIError] = {}

        for meta_key, value in fields.items():
            definition = definitions.get(meta_key)
            if definition is None:
                logger.debug("Ignoring unknown %s meta key %r", kind.value, meta_key)
                continue
            try:
                self.field_store.set(
                    post_id,
                    meta_key,
                    value,
                    definition.value_type,
                    definition.sanitizer,
                    user=user,
                )
            except APIError as exc:
                logger.error("Error saving %s meta %s on post %s: %s", kind.value, meta_key, post_id, exc)
                failed[meta_key] = exc

        if failed:
            first = next(iter(failed.values()))
            envelope = first.to_envelope()
            envelope["data"]["failed_keys"] = list(failed)
            return {"success": False, "error": envelope}

        return {"success": True, "result": self.fetch_snapshot(kind, post_id)}
