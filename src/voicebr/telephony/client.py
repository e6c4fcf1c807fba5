"""
Authenticated, rate-limited client for the voice platform REST API.

Every request carries a freshly signed RS256 bearer token; tokens are never
cached or reused.
"""

from __future__ import annotations

import json
import time
from typing import Any
from uuid import uuid4

import httpx
import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from voicebr.shared.exceptions import (
    PayloadEncodeError,
    RequestFailedError,
    SigningKeyError,
    TransportError,
)
from voicebr.shared.logging import get_logger
from voicebr.telephony.ratelimit import TokenBucketLimiter

logger = get_logger(__name__)

JWT_ALGORITHM = "RS256"
SUCCESS_STATUS_CODES = frozenset({200, 201})


def load_private_key(pem: bytes | str) -> RSAPrivateKey:
    """Parse a PEM encoded RSA private key.

    Raises:
        SigningKeyError: The PEM is unreadable or not an RSA key.
    """
    data = pem.encode("utf-8") if isinstance(pem, str) else pem
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError) as e:
        raise SigningKeyError(f"unable to parse private key: {e}") from e
    if not isinstance(key, RSAPrivateKey):
        raise SigningKeyError("private key is not an RSA key")
    return key


def check_status(response: httpx.Response) -> None:
    if response.status_code in SUCCESS_STATUS_CODES:
        return
    status_text = f"{response.status_code} {response.reason_phrase}".strip()
    raise RequestFailedError(response.status_code, status_text, str(response.request.url))


class SignedClient:
    """Voice API client signing each request with the application key.

    The client holds no per-call state and is shared by every concurrent
    broadcast unit.
    """

    def __init__(
        self,
        private_key: RSAPrivateKey | None,
        application_id: str,
        number: str,
        origin: str,
        *,
        http_client: httpx.AsyncClient,
        call_limiter: TokenBucketLimiter,
        get_limiter: TokenBucketLimiter,
    ) -> None:
        self._key = private_key
        self.application_id = application_id
        self.number = number
        self.origin = origin.rstrip("/")
        self._http_client = http_client
        self.call_limiter = call_limiter
        self.get_limiter = get_limiter

    @classmethod
    def from_pem(
        cls,
        pem: bytes | str,
        application_id: str,
        number: str,
        origin: str,
        *,
        http_client: httpx.AsyncClient,
        call_limiter: TokenBucketLimiter,
        get_limiter: TokenBucketLimiter,
    ) -> "SignedClient":
        return cls(
            load_private_key(pem),
            application_id,
            number,
            origin,
            http_client=http_client,
            call_limiter=call_limiter,
            get_limiter=get_limiter,
        )

    def token(self) -> str:
        """Sign a short-lived bearer token for a single request.

        Returns:
            Encoded JWT with application_id, iat and a unique jti.

        Raises:
            SigningKeyError: No private key is configured.
        """
        if self._key is None:
            raise SigningKeyError("token: found nil key, build the client with a valid private key")

        claims = {
            "application_id": self.application_id,
            "iat": int(time.time()),
            "jti": str(uuid4()),
        }
        return jwt.encode(claims, self._key, algorithm=JWT_ALGORITHM, headers={"typ": "JWT"})

    async def get(self, url: str, timeout: float | None = None) -> httpx.Response:
        """Authenticated GET, gated by the download limiter."""
        await self.get_limiter.wait(timeout)
        return await self._do("GET", url)

    async def post(
        self,
        url: str,
        body: Any,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Authenticated JSON POST, gated by the call limiter."""
        await self.call_limiter.wait(timeout)
        try:
            content = json.dumps(body).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise PayloadEncodeError(f"unable to encode request body: {e}") from e
        return await self._do("POST", url, content)

    async def _do(self, method: str, url: str, content: bytes | None = None) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.token()}"}
        if method == "POST":
            headers["Content-Type"] = "application/json"

        try:
            response = await self._http_client.request(method, url, headers=headers, content=content)
        except httpx.HTTPError as e:
            raise TransportError(
                f"{method} {url}: {e!s}",
                details={"method": method, "url": url},
            ) from e

        logger.debug(
            "Voice API response",
            extra={"method": method, "url": url, "status_code": response.status_code},
        )
        check_status(response)
        return response
