"""
Council meeting embeds.

An embed block flagged as a council meeting (or a YouTube embed saved
without a URL) renders empty; we fill it from the article's
``_article_youtube_id`` field. Fetching the provider markup is delegated to
an optional oEmbed callable, which may itself render blocks; `RenderState`
is passed through so a block being synthesized is not processed again.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping, Optional, Set
from urllib.parse import quote

from .sanitize import esc_html, esc_url
from .store import FieldStore

YOUTUBE_ID_KEY = "_article_youtube_id"
COUNCIL_MEETING_ATTRIBUTE = "__frmCouncilMeeting"

EMBED_WIDTH = 640
EMBED_HEIGHT = 360

OEmbedFetcher = Callable[..., Optional[str]]

_FIGURE_OPEN = (
    '<figure class="wp-block-embed is-type-video is-provider-youtube '
    'wp-block-embed-youtube wp-embed-aspect-16-9 wp-has-aspect-ratio">'
    '<div class="wp-block-embed__wrapper">'
)
_FIGURE_CLOSE = "</div></figure>"


@dataclass
class RenderState:
    """Per-render record of embeds currently being synthesized."""

    in_progress: Set[str] = field(default_factory=set)

    def is_rendering(self, marker: str) -> bool:
        return marker in self.in_progress

    @contextlib.contextmanager
    def rendering(self, marker: str) -> Iterator[None]:
        self.in_progress.add(marker)
        try:
            yield
        finally:
            self.in_progress.discard(marker)


def youtube_watch_url(youtube_id: str) -> str:
    return f"https://www.youtube.com/watch?v={quote(youtube_id, safe='')}"


def iframe_embed(youtube_id: str) -> str:
    src = esc_url(f"https://www.youtube.com/embed/{quote(youtube_id, safe='')}")
    title = esc_html(f"Embedded video: {youtube_id}")
    return (
        f"{_FIGURE_OPEN}"
        f'<iframe loading="lazy" title="{title}" width="{EMBED_WIDTH}" height="{EMBED_HEIGHT}" '
        f'src="{src}" frameborder="0" allow="accelerometer; autoplay; clipboard-write; '
        f'encrypted-media; gyroscope; picture-in-picture" allowfullscreen></iframe>'
        f"{_FIGURE_CLOSE}"
    )


def _needs_fill(attrs: Mapping[str, Any], content: str) -> bool:
    is_council_meeting = attrs.get(COUNCIL_MEETING_ATTRIBUTE) is True
    is_youtube_no_url = attrs.get("providerNameSlug") == "youtube" and (
        not attrs.get("url") or not content.strip()
    )
    return is_council_meeting or is_youtube_no_url


def render_council_meeting_embed(
    block: Mapping[str, Any],
    content: str,
    field_store: FieldStore,
    state: RenderState,
    *,
    oembed: Optional[OEmbedFetcher] = None,
    post_id: Optional[int] = None,
) -> str:
    """Rendered HTML for an embed block, filled from the article's YouTube id."""
    if block.get("blockName") != "core/embed":
        return content

    if not _needs_fill(block.get("attrs") or {}, content):
        return content

    if content.strip():
        return content

    post_id = (block.get("context") or {}).get("postId") or post_id
    if not post_id:
        return content

    youtube_id = field_store.get(post_id, YOUTUBE_ID_KEY)
    if not youtube_id:
        return content

    marker = f"{post_id}:{youtube_id}"
    if state.is_rendering(marker):
        return content

    embed_html = None
    if oembed is not None:
        with state.rendering(marker):
            embed_html = oembed(
                youtube_watch_url(youtube_id),
                width=EMBED_WIDTH,
                height=EMBED_HEIGHT,
            )

    if not embed_html:
        return iframe_embed(youtube_id)
    return f"{_FIGURE_OPEN}{embed_html}{_FIGURE_CLOSE}"
