"""
Access Token Providers.

The REST client asks its token provider for a token before every call.
Two providers exist:

    StaticTokenProvider     - a pre-acquired token (CI, scripts)
    NativeAppAuthorization  - interactive OAuth 2.0 authorization-code
                              sign-in with PKCE and a loopback redirect

Usage:
    auth = NativeAppAuthorization(issuer_url, client_id, redirect_url, scopes)
    await auth.sign_in()
    token = await auth.get_access_token()
"""

import asyncio
import base64
import hashlib
import secrets
import time
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Protocol
from urllib.parse import parse_qs, urlencode, urlparse

import httpx
from jose import JWTError, jwt

from classification_client.core.exceptions import AuthenticationError
from classification_client.core.logging import get_logger, log_with_source

logger = get_logger(__name__)

DISCOVERY_PATH = "/.well-known/openid-configuration"

_SIGN_IN_PAGE = (
    b"<html><body><h3>Sign-in complete.</h3>"
    b"<p>You can close this window and return to the terminal.</p></body></html>"
)


class TokenProvider(Protocol):
    """Anything that can hand out a bearer token."""

    async def get_access_token(self) -> str:
        ...


class StaticTokenProvider:
    """Returns the same pre-acquired token for every call."""

    def __init__(self, token: str) -> None:
        token = token.strip()
        if token.lower().startswith("bearer "):
            token = token[len("bearer "):].strip()
        if not token:
            raise AuthenticationError("Access token is empty")
        self._token = token

    async def get_access_token(self) -> str:
        return self._token


@dataclass
class TokenSet:
    access_token: str
    expires_at: float | None = None
    refresh_token: str | None = None


@dataclass(frozen=True)
class AuthorizationRequest:
    url: str
    state: str
    code_verifier: str


def generate_pkce_pair() -> tuple[str, str]:
    """Return (code_verifier, code_challenge) using the S256 method."""
    verifier = secrets.token_urlsafe(64)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge


def token_expiry(token: str) -> float | None:
    """Read the exp claim of a JWT access token without verifying it."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    exp = claims.get("exp")
    return float(exp) if exp is not None else None


def receive_redirect(redirect_url: str, timeout: float) -> dict[str, str]:
    """
    Serve the redirect URL on the loopback interface until the identity
    provider sends the browser back, and return its query parameters.

    Raises:
        AuthenticationError: If no redirect arrives within timeout seconds
    """
    parsed = urlparse(redirect_url)
    host = parsed.hostname or "localhost"
    port = parsed.port or 80
    expected_path = parsed.path or "/"
    captured: dict[str, str] = {}

    class _RedirectHandler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            url = urlparse(self.path)
            if url.path != expected_path:
                self.send_response(404)
                self.end_headers()
                return
            captured.update({k: v[0] for k, v in parse_qs(url.query).items()})
            self.send_response(200)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.end_headers()
            self.wfile.write(_SIGN_IN_PAGE)

        def log_message(self, format: str, *args: Any) -> None:
            log_with_source(logger, "auth", "debug", "Redirect listener", detail=format % args)

    deadline = time.monotonic() + timeout
    with HTTPServer((host, port), _RedirectHandler) as server:
        while not captured:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise AuthenticationError("Timed out waiting for the sign-in redirect")
            server.timeout = min(remaining, 1.0)
            server.handle_request()
    return captured


class NativeAppAuthorization:
    """
    OAuth 2.0 authorization-code flow with PKCE for a command-line app.

    Endpoints come from the issuer's OpenID discovery document. Tokens
    are kept in memory only and refreshed shortly before they expire.
    """

    def __init__(
        self,
        issuer_url: str,
        client_id: str,
        redirect_url: str,
        scopes: str,
        *,
        sign_in_timeout: float = 300,
        refresh_margin: float = 60,
        transport: httpx.AsyncBaseTransport | None = None,
        open_browser: Callable[[str], Any] = webbrowser.open,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.issuer_url = issuer_url.rstrip("/")
        self.client_id = client_id
        self.redirect_url = redirect_url
        self.scopes = scopes
        self.sign_in_timeout = sign_in_timeout
        self.refresh_margin = refresh_margin
        self._transport = transport
        self._open_browser = open_browser
        self._clock = clock
        self._client: httpx.AsyncClient | None = None
        self._metadata: dict[str, Any] | None = None
        self._tokens: TokenSet | None = None

    @property
    def is_signed_in(self) -> bool:
        return self._tokens is not None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=30.0, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def discover(self) -> dict[str, Any]:
        """Fetch and cache the issuer's OpenID configuration."""
        if self._metadata is not None:
            return self._metadata

        url = f"{self.issuer_url}{DISCOVERY_PATH}"
        response = await self._get_client().get(url)
        if response.status_code != 200:
            raise AuthenticationError(
                f"Discovery at {url} failed with status {response.status_code}"
            )

        metadata = response.json()
        for key in ("authorization_endpoint", "token_endpoint"):
            if not metadata.get(key):
                raise AuthenticationError(f"Discovery document has no {key}")

        self._metadata = metadata
        return metadata

    def build_authorization_request(self, authorization_endpoint: str) -> AuthorizationRequest:
        verifier, challenge = generate_pkce_pair()
        state = secrets.token_urlsafe(16)
        query = urlencode({
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_url,
            "scope": self.scopes,
            "state": state,
            "code_challenge": challenge,
            "code_challenge_method": "S256",
        })
        return AuthorizationRequest(
            url=f"{authorization_endpoint}?{query}",
            state=state,
            code_verifier=verifier,
        )

    async def sign_in(self) -> None:
        """Run the interactive browser sign-in."""
        metadata = await self.discover()
        request = self.build_authorization_request(metadata["authorization_endpoint"])

        log_with_source(logger, "auth", "info", "Opening browser for sign-in", issuer=self.issuer_url)
        self._open_browser(request.url)

        params = await asyncio.to_thread(
            receive_redirect, self.redirect_url, self.sign_in_timeout
        )
        await self.complete_sign_in(request, params)

    async def complete_sign_in(self, request: AuthorizationRequest, params: dict[str, str]) -> None:
        """Exchange the authorization code from the redirect for tokens."""
        if "error" in params:
            detail = params.get("error_description", "")
            raise AuthenticationError(f"Sign-in failed: {params['error']} {detail}".strip())
        if params.get("state") != request.state:
            raise AuthenticationError("Sign-in redirect carried an unexpected state")
        code = params.get("code")
        if not code:
            raise AuthenticationError("Sign-in redirect carried no authorization code")

        self._tokens = await self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_url,
            "client_id": self.client_id,
            "code_verifier": request.code_verifier,
        })
        log_with_source(logger, "auth", "info", "Signed in", client_id=self.client_id)

    async def get_access_token(self) -> str:
        """
        Return a usable access token, refreshing it first if it is about
        to expire.

        Raises:
            AuthenticationError: If not signed in or the refresh fails
        """
        if self._tokens is None:
            raise AuthenticationError("Call sign_in() before requesting an access token")

        if self._is_expiring(self._tokens):
            if not self._tokens.refresh_token:
                raise AuthenticationError("Access token expired and cannot be refreshed")
            log_with_source(logger, "auth", "debug", "Refreshing access token")
            self._tokens = await self._token_request(
                {
                    "grant_type": "refresh_token",
                    "refresh_token": self._tokens.refresh_token,
                    "client_id": self.client_id,
                    "scope": self.scopes,
                },
                previous=self._tokens,
            )

        return self._tokens.access_token

    def _is_expiring(self, tokens: TokenSet) -> bool:
        if tokens.expires_at is None:
            return False
        return self._clock() >= tokens.expires_at - self.refresh_margin

    async def _token_request(
        self,
        form: dict[str, str],
        previous: TokenSet | None = None,
    ) -> TokenSet:
        metadata = await self.discover()
        response = await self._get_client().post(
            metadata["token_endpoint"],
            data=form,
            headers={"Accept": "application/json"},
        )
        if not 200 <= response.status_code < 300:
            raise AuthenticationError(
                f"Token request failed with status {response.status_code}: {response.text}"
            )

        payload = response.json()
        access_token = payload.get("access_token")
        if not access_token:
            raise AuthenticationError("Token response carried no access_token")

        expires_in = payload.get("expires_in")
        if expires_in is not None:
            expires_at = self._clock() + float(expires_in)
        else:
            expires_at = token_expiry(access_token)

        refresh_token = payload.get("refresh_token")
        if refresh_token is None and previous is not None:
            refresh_token = previous.refresh_token

        return TokenSet(
            access_token=access_token,
            expires_at=expires_at,
            refresh_token=refresh_token,
        )
