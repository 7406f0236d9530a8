"""
HTTP client for the site's ``wp/v2`` REST routes, where the meta fields of
articles, journalists and artists are read (``?context=edit``) and saved
(``POST {"meta": {...}}``).
"""

import base64
import time
import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .exceptions import FrMirrorError, raise_for_api_error
from .entities.articles import ArticlesProxy
from .entities.artists import ArtistsProxy
from .entities.journalists import JournalistsProxy

USER_AGENT = "frmirror-client"

# Methods the host answers without a request body
_BODYLESS = frozenset({"GET", "DELETE"})


@dataclass
class Credentials:
    """
    A username plus one secret: a login password (exchanged for a JWT
    bearer token) or an application password (sent as HTTP Basic auth).
    """
    username: Optional[str] = None
    password: Optional[str] = None
    application_password: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.username:
            raise ValueError("A username is required.")
        if bool(self.password) == bool(self.application_password):
            raise ValueError("Provide exactly one of password or application_password.")

    @property
    def is_application_password(self) -> bool:
        return bool(self.application_password)


def build_session(pool_connections: int, pool_maxsize: int, retries: int = 3) -> requests.Session:
    """Pooled session retrying idempotent requests on 429 and 5xx answers."""
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=pool_connections,
        pool_maxsize=pool_maxsize,
        max_retries=Retry(
            total=retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
        ),
    )
    for prefix in ("http://", "https://"):
        session.mount(prefix, adapter)
    return session


class Client:
    """
    Authenticated access to the site REST API.

    Args:
        base_url: Site URL (e.g., 'https://example.com')
        credentials: Credentials object
        api_prefix: REST namespace of the post routes
        token_endpoint: JWT login route, used with login passwords
        verify_tls: Whether to verify SSL/TLS certificates
        default_timeout: Request timeout in seconds
        pool_connections / pool_maxsize: urllib3 pool sizing

    Example:
        >>> creds = Credentials(username='editor', application_password='abcd efgh')
        >>> client = Client('https://example.com', creds)
        >>> client.journalists['ada-lovelace'].email
    """

    def __init__(
        self,
        base_url: str,
        credentials: Credentials,
        *,
        api_prefix: str = "/wp-json/wp/v2",
        token_endpoint: str = "/wp-json/jwt-auth/v1/token",
        verify_tls: bool = True,
        default_timeout: float = 30.0,
        pool_connections: int = 3,
        pool_maxsize: int = 10,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix.strip("/")
        self.token_endpoint = token_endpoint.strip("/")
        self.credentials = credentials
        self.verify_tls = verify_tls
        self.default_timeout = default_timeout

        self._session = build_session(pool_connections, pool_maxsize)

        self._auth_header: Optional[str] = None
        self._token_expiry_ts = 0.0
        self.authenticate()

        self.articles = ArticlesProxy(self)
        self.journalists = JournalistsProxy(self)
        self.artists = ArtistsProxy(self)

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    @staticmethod
    def _join(base: str, path: str) -> str:
        return urllib.parse.urljoin(base.rstrip("/") + "/", path.lstrip("/"))

    @property
    def api_base(self) -> str:
        """e.g. 'https://example.com/wp-json/wp/v2'"""
        return self._join(self.base_url, self.api_prefix)

    def endpoint(self, endpoint: str) -> str:
        """'article/12' -> '<api_base>/article/12'"""
        return self._join(self.api_base, endpoint)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def authenticate(self) -> None:
        """
        (Re)build the Authorization header.

        Application passwords never expire. Login passwords are exchanged
        for a bearer token, renewed a little before it runs out.

        Raises:
            FrMirrorError: If the login fails or the response has no token
        """
        if self.credentials.is_application_password:
            self._auth_header, self._token_expiry_ts = self._basic_auth()
        else:
            self._auth_header, self._token_expiry_ts = self._login()

    def _basic_auth(self) -> Tuple[str, float]:
        pair = f"{self.credentials.username}:{self.credentials.application_password}"
        encoded = base64.b64encode(pair.encode("utf-8")).decode("ascii")
        return f"Basic {encoded}", float("inf")

    def _login(self) -> Tuple[str, float]:
        resp = self._session.post(
            self._join(self.base_url, self.token_endpoint),
            json={
                "username": self.credentials.username,
                "password": self.credentials.password,
            },
            verify=self.verify_tls,
            timeout=self.default_timeout,
        )
        if resp.status_code != 200:
            raise FrMirrorError(f"Authentication failed ({resp.status_code}): {resp.text}")

        # The JWT plugin answers {"token": ...} or {"data": {"token": ...}}
        body = resp.json() or {}
        data = body["data"] if isinstance(body.get("data"), dict) else body
        token = body.get("token") or data.get("token")
        if not token:
            raise FrMirrorError("Authentication response missing token field.")

        lifetime = float(data.get("expires_in", 3600))
        margin = min(60, max(10, lifetime * 0.1))
        return f"Bearer {token}", time.time() + lifetime - margin

    def _ensure_token(self) -> None:
        if not self._auth_header or time.time() >= self._token_expiry_ts:
            self.authenticate()

    def me(self) -> Dict[str, Any]:
        """The authenticated user (edit context includes capabilities)."""
        return self.GET("users", "me", context="edit").json()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _headers(self, auth: bool, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers = {"User-Agent": USER_AGENT}
        for name, value in (extra or {}).items():
            # The credentials decide Authorization on authenticated calls
            if auth and name.lower() == "authorization":
                continue
            headers[name] = value
        if auth:
            self._ensure_token()
            headers["Authorization"] = self._auth_header
        return headers

    def request(
        self,
        method: str,
        endpoint: str,
        *,
        auth=True,
        timeout=None,
        headers=None,
        params=None,
        **kwargs,
    ) -> requests.Response:
        """
        Send one request to ``endpoint`` (relative to `api_base`).

        ``kwargs`` go to `requests` (``json=...``); GET and DELETE take none.

        Raises:
            ValueError: If GET/DELETE request includes a body
            APIError: If the API answers with an error payload
        """
        method = method.upper()
        if kwargs and method in _BODYLESS:
            raise ValueError(f"{method} requests cannot include a request body.")

        resp = self._session.request(
            method,
            self.endpoint(endpoint),
            headers=self._headers(auth, headers),
            params=params,
            verify=self.verify_tls,
            timeout=self.default_timeout if timeout is None else timeout,
            **kwargs,
        )
        raise_for_api_error(resp)
        return resp

    def get(self, endpoint: str, **params: Any) -> requests.Response:
        return self.request("GET", endpoint, params=params)

    def post(self, endpoint: str, **kwargs: Any) -> requests.Response:
        # The host updates posts on POST; there is no separate PUT/PATCH use
        return self.request("POST", endpoint, **kwargs)

    def delete(self, endpoint: str, **params: Any) -> requests.Response:
        return self.request("DELETE", endpoint, params=params)

    # Path-part wrappers: client.GET('article', 12, context='edit')

    def GET(self, *parts, **params) -> requests.Response:
        return self.get(_path(parts), **params)

    def POST(self, *parts, params=None, **json) -> requests.Response:
        """
        POST a JSON body built from keyword arguments.

        Example:
            >>> client.POST('article', 12, meta={'_article_committee': 'Finance'})
        """
        return self.post(_path(parts), params=params, json=json)

    def DELETE(self, *parts, **params) -> requests.Response:
        return self.delete(_path(parts), **params)


def _path(parts) -> str:
    return "/".join(str(p).strip("/") for p in parts)
