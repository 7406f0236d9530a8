import pytest

from frmirror.embeds import (
    COUNCIL_MEETING_ATTRIBUTE,
    RenderState,
    iframe_embed,
    render_council_meeting_embed,
    youtube_watch_url,
)


@pytest.fixture
def meeting(post_store, article):
    post_store.update_meta(article.id, "_article_youtube_id", "dQw4w9WgXcQ")
    return article


def embed_block(post_id=None, **attrs):
    block = {"blockName": "core/embed", "attrs": {COUNCIL_MEETING_ATTRIBUTE: True, **attrs}}
    if post_id is not None:
        block["context"] = {"postId": post_id}
    return block


def test_non_embed_blocks_pass_through(field_store, meeting):
    block = {"blockName": "core/paragraph", "attrs": {}, "context": {"postId": meeting.id}}
    assert render_council_meeting_embed(block, "<p>x</p>", field_store, RenderState()) == "<p>x</p>"


def test_existing_content_is_kept(field_store, meeting):
    content = "<figure>already embedded</figure>"
    assert render_council_meeting_embed(embed_block(meeting.id), content, field_store, RenderState()) == content


def test_plain_embed_without_flag_is_untouched(field_store, meeting):
    block = {"blockName": "core/embed", "attrs": {"url": "https://vimeo.com/1"}, "context": {"postId": meeting.id}}
    assert render_council_meeting_embed(block, "", field_store, RenderState()) == ""


def test_iframe_fallback_without_oembed(field_store, meeting):
    html = render_council_meeting_embed(embed_block(meeting.id), "", field_store, RenderState())
    assert html == iframe_embed("dQw4w9WgXcQ")
    assert 'src="https://www.youtube.com/embed/dQw4w9WgXcQ"' in html
    assert html.startswith("<figure")


def test_youtube_embed_without_url_is_filled(field_store, meeting):
    block = {"blockName": "core/embed", "attrs": {"providerNameSlug": "youtube"}}
    html = render_council_meeting_embed(block, "  ", field_store, RenderState(), post_id=meeting.id)
    assert "youtube.com/embed/dQw4w9WgXcQ" in html


def test_missing_post_or_video_id(field_store, article):
    assert render_council_meeting_embed(embed_block(), "", field_store, RenderState()) == ""
    assert render_council_meeting_embed(embed_block(article.id), "", field_store, RenderState()) == ""


def test_oembed_markup_is_wrapped(field_store, meeting):
    calls = []

    def oembed(url, **kwargs):
        calls.append((url, kwargs))
        return "<iframe data-provider></iframe>"

    html = render_council_meeting_embed(
        embed_block(meeting.id), "", field_store, RenderState(), oembed=oembed
    )
    assert calls == [(youtube_watch_url("dQw4w9WgXcQ"), {"width": 640, "height": 360})]
    assert "<iframe data-provider></iframe>" in html
    assert html.endswith("</div></figure>")


def test_oembed_returning_nothing_falls_back(field_store, meeting):
    html = render_council_meeting_embed(
        embed_block(meeting.id), "", field_store, RenderState(), oembed=lambda url, **kw: None
    )
    assert html == iframe_embed("dQw4w9WgXcQ")


def test_reentrant_render_is_not_processed_again(field_store, meeting):
    state = RenderState()
    inner_results = []

    def oembed(url, **kwargs):
        # provider rendering re-enters the same embed block
        inner_results.append(
            render_council_meeting_embed(embed_block(meeting.id), "", field_store, state, oembed=oembed)
        )
        return "<iframe></iframe>"

    html = render_council_meeting_embed(embed_block(meeting.id), "", field_store, state, oembed=oembed)

    assert inner_results == [""]
    assert "<iframe></iframe>" in html
    assert state.in_progress == set()


def test_render_state_clears_marker_on_error(field_store, meeting):
    state = RenderState()

    def oembed(url, **kwargs):
        raise RuntimeError("provider down")

    with pytest.raises(RuntimeError):
        render_council_meeting_embed(embed_block(meeting.id), "", field_store, state, oembed=oembed)
    assert not state.is_rendering(f"{meeting.id}:dQw4w9WgXcQ")


def test_youtube_id_is_quoted():
    assert youtube_watch_url("a b&c") == "https://www.youtube.com/watch?v=a%20b%26c"
