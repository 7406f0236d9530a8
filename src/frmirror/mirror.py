"""
Editor-side mirror of one post's meta fields.

The mirror holds the field set the author is editing, pushes it in one
request when the editor starts saving, and re-reads it afterwards so the
in-memory copy reflects server-side sanitization. Network calls run on an
executor and report back through completion callbacks; callers never wait.

Typical wiring in an editor session:

    >>> mirror = MetaMirror(client, "journalist")
    >>> mirror.open(42)
    >>> mirror.edit("_journalist_first_name", "Ada")
    >>> mirror.set_saving(True)     # host save starts: meta is pushed
    >>> mirror.set_saving(False)    # host save ends: re-fetch is scheduled
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Mapping, Optional

from .bindings import BULLET_POINTS_KEY, VIEW_COUNT_KEY, VIRTUAL_KEYS, Namespace
from .fields import PostKind, ValueType, coerce, is_empty, meta_definitions, meta_key_for
from .sanitize import kses_bullet_points

logger = logging.getLogger(__name__)

Scheduler = Callable[[float, Callable[[], None]], Any]


def shape(kind: PostKind | str, raw: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Fully populated field set for ``kind``.

    Every defined meta key is present, coerced the same way the server
    coerces reads; keys the registry doesn't define are dropped.
    """
    raw = raw or {}
    return {
        meta_key: coerce(raw.get(meta_key), definition.value_type, definition.default_value)
        for meta_key, definition in meta_definitions(kind).items()
    }


def _start_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class MetaMirror:
    """
    In-memory copy of a post's meta fields, kept in step with the site.

    Args:
        client: a `frmirror.client.Client` (anything with GET/POST wrappers)
        kind: post kind the mirror edits
        executor: runs network calls; defaults to a small thread pool
        scheduler: ``scheduler(delay, callback)`` used for the post-save
            re-fetch; defaults to a daemon `threading.Timer`
        refresh_delay: seconds between save completion and the re-fetch
    """

    def __init__(
        self,
        client,
        kind: PostKind | str,
        *,
        executor: Optional[Executor] = None,
        scheduler: Optional[Scheduler] = None,
        refresh_delay: float = 0.5,
    ) -> None:
        self.client = client
        self.kind = PostKind(kind)
        self.namespace = Namespace(f"{self.kind.value}-meta")
        self.refresh_delay = refresh_delay

        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="frmirror"
        )
        self._schedule = scheduler or _start_timer
        self._lock = threading.Lock()

        self.post_id: Optional[int] = None
        self.initialized = False
        self._fields: Dict[str, Any] = {}
        self._saving = False
        self._pending: Optional[Dict[str, Any]] = None

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def fields(self) -> Dict[str, Any]:
        with self._lock:
            return shape(self.kind, self._fields)

    @property
    def pending(self) -> Optional[Dict[str, Any]]:
        """Field set of the save in flight, if any."""
        return self._pending

    @property
    def saving(self) -> bool:
        return self._saving

    def edit(self, key: str, value: Any) -> None:
        meta_key = self._meta_key(key)
        with self._lock:
            self._fields[meta_key] = value

    def preview(self, namespace: Namespace | str, key: str) -> Optional[Any]:
        """
        Value a bound block shows in the editor for ``key``.

        Shaped like the server-side resolver: empty view count reads "0",
        other empty fields read "", bullet points are filtered to the list
        allow-list. Virtual keys and other namespaces need data from other
        posts and preview as None.
        """
        if not isinstance(namespace, Namespace):
            namespace = Namespace.parse(namespace)
        if namespace is not self.namespace or not key or key in VIRTUAL_KEYS:
            return None

        meta_key = meta_key_for(self.kind, key)
        definition = meta_definitions(self.kind).get(meta_key)
        if definition is None:
            return ""

        with self._lock:
            value = self._fields.get(meta_key)

        if is_empty(value):
            return "0" if meta_key == VIEW_COUNT_KEY else ""
        if meta_key == BULLET_POINTS_KEY:
            return kses_bullet_points(value)
        if definition.value_type is ValueType.INTEGER:
            # What the save will store
            return str(definition.sanitizer(value))
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    # ------------------------------------------------------------------ #
    # Fetching
    # ------------------------------------------------------------------ #

    def open(self, post_id: int) -> Future:
        """Switch to ``post_id`` and load its persisted fields."""
        with self._lock:
            self.post_id = post_id
            self.initialized = False
            self._fields = {}
        return self._fetch(post_id)

    def refresh(self) -> Optional[Future]:
        """Re-read the current post's fields, replacing the in-memory copy."""
        if self.post_id is None:
            return None
        return self._fetch(self.post_id)

    def _fetch(self, token: int) -> Future:
        future = self._executor.submit(self._get_meta, token)
        future.add_done_callback(lambda f: self._on_fetched(token, f))
        return future

    def _get_meta(self, post_id: int) -> Dict[str, Any]:
        body = self.client.GET(self.kind.value, post_id, context="edit").json()
        return body.get("meta") or {}

    def _on_fetched(self, token: int, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Error fetching %s meta for post %s: %s", self.kind.value, token, exc)
            return

        with self._lock:
            if token != self.post_id:
                logger.debug(
                    "Discarding %s meta for post %s; now editing %s",
                    self.kind.value, token, self.post_id,
                )
                return
            self._fields = shape(self.kind, future.result())
            self.initialized = True

    # ------------------------------------------------------------------ #
    # Saving
    # ------------------------------------------------------------------ #

    def set_saving(self, flag: bool) -> None:
        """
        Follow the host editor's "saving" flag.

        Only the false→true edge pushes the field set; the true→false edge
        schedules a re-fetch unless a push is still unresolved.
        """
        flag = bool(flag)
        was_saving, self._saving = self._saving, flag

        if flag and not was_saving:
            self._push()
        elif was_saving and not flag and self._pending is None and self.post_id is not None:
            self._schedule(self.refresh_delay, self.refresh)

    def _push(self) -> Optional[Future]:
        if self.post_id is None or not self.initialized:
            return None

        token = self.post_id
        payload = self.fields
        self._pending = payload

        future = self._executor.submit(self._post_meta, token, payload)
        future.add_done_callback(lambda f: self._on_saved(token, f))
        return future

    def _post_meta(self, post_id: int, payload: Dict[str, Any]) -> Any:
        return self.client.POST(self.kind.value, post_id, meta=payload).json()

    def _on_saved(self, token: int, future: Future) -> None:
        self._pending = None
        exc = future.exception()
        if exc is not None:
            logger.error("Error saving %s meta for post %s: %s", self.kind.value, token, exc)
            return
        logger.debug("Saved %s meta for post %s", self.kind.value, token)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _meta_key(self, key: str) -> str:
        # Accept stored keys ("_journalist_email") as well as short ones ("email")
        definitions = meta_definitions(self.kind)
        if key in definitions:
            return key
        meta_key = meta_key_for(self.kind, key)
        if meta_key not in definitions:
            raise KeyError(f"{key!r} is not a {self.kind.value} field")
        return meta_key

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def __repr__(self) -> str:
        return f"<MetaMirror {self.kind.value} post={self.post_id} saving={self._saving}>"
