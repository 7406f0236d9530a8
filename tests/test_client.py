import base64

import pytest

from frmirror.client import Client, Credentials, FrMirrorError
from frmirror.exceptions import ForbiddenError, UpdateFailedError

from conftest import StubResponse


def build_client(monkeypatch, stub_session, credentials=None):
    monkeypatch.setattr("frmirror.client.requests.Session", lambda: stub_session)
    return Client("https://example.com/", credentials or Credentials("editor", password="pass"))


def test_credentials_require_exactly_one_secret():
    with pytest.raises(ValueError):
        Credentials("editor")
    with pytest.raises(ValueError):
        Credentials("editor", password="a", application_password="b")
    with pytest.raises(ValueError):
        Credentials(None, password="a")


def test_application_password_uses_basic_auth(monkeypatch, stub_session):
    client = build_client(
        monkeypatch, stub_session, Credentials("editor", application_password="abcd efgh")
    )

    expected = base64.b64encode(b"editor:abcd efgh").decode("ascii")
    assert client._auth_header == f"Basic {expected}"
    assert client._token_expiry_ts == float("inf")
    assert stub_session.post_calls == []


def test_authenticate_success(monkeypatch, stub_session, frozen_time):
    stub_session.post_response = StubResponse(
        200, {"data": {"token": "abc123", "expires_in": 120}}
    )
    client = build_client(monkeypatch, stub_session)

    assert client._auth_header == "Bearer abc123"
    # safety_margin = 10% of expires_in = 12
    assert client._token_expiry_ts == pytest.approx(frozen_time + 120 - 12)

    assert stub_session.post_calls[0]["url"] == "https://example.com/wp-json/jwt-auth/v1/token"
    assert stub_session.post_calls[0]["json"] == {"username": "editor", "password": "pass"}


def test_authenticate_reads_top_level_token(monkeypatch, stub_session, frozen_time):
    stub_session.post_response = StubResponse(200, {"token": "top", "user_email": "e@example.com"})
    client = build_client(monkeypatch, stub_session)

    assert client._auth_header == "Bearer top"
    assert client._token_expiry_ts == pytest.approx(frozen_time + 3600 - 60)


def test_authenticate_fails_without_token(monkeypatch, stub_session):
    stub_session.post_response = StubResponse(200, {"data": {}})
    with pytest.raises(FrMirrorError, match="missing token"):
        build_client(monkeypatch, stub_session)


def test_authenticate_http_error(monkeypatch, stub_session):
    stub_session.post_response = StubResponse(403, {"code": "incorrect_password"}, text="bad creds")
    with pytest.raises(FrMirrorError, match="Authentication failed"):
        build_client(monkeypatch, stub_session)


def test_ensure_token_refreshes(monkeypatch, stub_session, frozen_time):
    stub_session.post_response = StubResponse(200, {"token": "initial", "expires_in": 5})
    client = build_client(monkeypatch, stub_session)

    calls = []

    def fake_authenticate():
        calls.append("auth")
        client._auth_header = "Bearer refreshed"
        client._token_expiry_ts = frozen_time + 50

    client.authenticate = fake_authenticate  # type: ignore[method-assign]
    client._auth_header = None
    client._token_expiry_ts = 0

    client._ensure_token()
    assert calls == ["auth"]
    assert client._auth_header == "Bearer refreshed"


def test_request_adds_auth_and_merges_headers(monkeypatch, stub_session, frozen_time):
    stub_session.post_response = StubResponse(200, {"token": "auth-token"})
    client = build_client(monkeypatch, stub_session)

    called_with = {}

    def fake_raise_for_api_error(resp):
        called_with["resp"] = resp

    monkeypatch.setattr("frmirror.client.raise_for_api_error", fake_raise_for_api_error)
    stub_session.request_response = StubResponse(200, {"ok": True})

    resp = client.request(
        "POST",
        "article/12",
        headers={"Authorization": "override", "X-Test": "yes"},
        json={"meta": {"_article_committee": "Finance"}},
    )

    assert resp is stub_session.request_response
    req = stub_session.request_calls[0]
    assert req["url"] == "https://example.com/wp-json/wp/v2/article/12"
    assert req["headers"]["Authorization"] == "Bearer auth-token"
    assert req["headers"]["X-Test"] == "yes"
    assert req["kwargs"]["json"] == {"meta": {"_article_committee": "Finance"}}
    assert called_with["resp"] is stub_session.request_response


def test_request_without_auth(monkeypatch, stub_session):
    stub_session.post_response = StubResponse(200, {"token": "auth-token"})
    client = build_client(monkeypatch, stub_session)

    def boom():
        raise RuntimeError("should not be called")

    client._ensure_token = boom  # type: ignore[assignment]
    stub_session.request_response = StubResponse(200, [])
    monkeypatch.setattr("frmirror.client.raise_for_api_error", lambda resp: None)

    client.request("GET", "artist", auth=False, params={"per_page": 1})
    req = stub_session.request_calls[0]
    assert "Authorization" not in req["headers"]
    assert req["params"] == {"per_page": 1}


def test_request_rejects_body_for_get(monkeypatch, stub_session):
    stub_session.post_response = StubResponse(200, {"token": "auth-token"})
    client = build_client(monkeypatch, stub_session)

    with pytest.raises(ValueError):
        client.request("GET", "article", json={"a": 1})


def test_path_part_wrappers(monkeypatch, stub_session):
    stub_session.post_response = StubResponse(200, {"token": "auth-token"})
    client = build_client(monkeypatch, stub_session)
    stub_session.request_response = StubResponse(200, {"id": 12})

    client.GET("article", 12, context="edit")
    client.POST("article", 12, meta={"_article_view_count": 3})

    get_call, post_call = stub_session.request_calls
    assert get_call["method"] == "GET"
    assert get_call["url"].endswith("/wp-json/wp/v2/article/12")
    assert get_call["params"] == {"context": "edit"}
    assert post_call["method"] == "POST"
    assert post_call["kwargs"]["json"] == {"meta": {"_article_view_count": 3}}


def test_api_errors_are_raised(monkeypatch, stub_session):
    stub_session.post_response = StubResponse(200, {"token": "auth-token"})
    client = build_client(monkeypatch, stub_session)
    stub_session.request_response = StubResponse(
        403,
        {"code": "rest_forbidden", "message": "Sorry, you are not allowed.", "data": {"status": 403}},
    )

    with pytest.raises(ForbiddenError) as excinfo:
        client.POST("journalist", 3, meta={})
    assert excinfo.value.code == "rest_forbidden"


def test_failed_save_envelope_is_raised(monkeypatch, stub_session):
    stub_session.post_response = StubResponse(200, {"token": "auth-token"})
    client = build_client(monkeypatch, stub_session)
    stub_session.request_response = StubResponse(
        200,
        {
            "success": False,
            "error": {
                "code": "update_failed",
                "message": "Failed to update meta field",
                "data": {"status": 500, "failed_keys": ["_article_view_count"]},
            },
        },
    )

    with pytest.raises(UpdateFailedError) as excinfo:
        client.POST("article", 3, meta={})
    assert excinfo.value.status_code == 500


def test_collection_proxies(monkeypatch, stub_session):
    stub_session.post_response = StubResponse(200, {"token": "auth-token"})
    client = build_client(monkeypatch, stub_session)

    assert client.articles.ENDPOINT == "article"
    assert client.journalists.ENDPOINT == "journalist"
    assert client.artists.ENDPOINT == "artist"
    assert set(stub_session.mounted) == {"http://", "https://"}
