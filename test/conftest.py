"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from voicebr.broadcast.orchestrator import BroadcastOrchestrator
from voicebr.config import Settings
from voicebr.storage.local import LocalStorage
from voicebr.telephony.client import SignedClient
from voicebr.telephony.ratelimit import TokenBucketLimiter

ORIGIN = "https://voicebr.test"
OUTBOUND_NUMBER = "+390000000000"
APPLICATION_ID = "aaaaaaaa-bbbb-cccc-dddd-0123456789ab"


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeVoiceAPI:
    """httpx.MockTransport handler standing in for the voice platform."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.failing_numbers: set[str] = set()
        self.recordings: dict[str, bytes] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.method == "GET":
            content = self.recordings.get(str(request.url))
            if content is None:
                return httpx.Response(404)
            return httpx.Response(200, content=content, headers={"Content-Type": "audio/mpeg"})

        payload = json.loads(request.content)
        if payload["to"][0]["number"] in self.failing_numbers:
            return httpx.Response(500, json={"title": "Internal Server Error"})
        return httpx.Response(
            201,
            json={"uuid": str(uuid4()), "status": "started", "direction": "outbound"},
        )

    @property
    def call_payloads(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.method == "POST"]

    @property
    def called_numbers(self) -> list[str]:
        return [p["to"][0]["number"] for p in self.call_payloads]


@pytest.fixture(scope="session")
def rsa_key() -> RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_key: RSAPrivateKey) -> bytes:
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def test_settings(tmp_path: Path, private_key_pem: bytes) -> Settings:
    """Create test settings."""
    return Settings(
        application_id=APPLICATION_ID,
        private_key=private_key_pem.decode("utf-8"),
        number=OUTBOUND_NUMBER,
        external_origin=ORIGIN,
        storage_root=tmp_path,
    )


@pytest.fixture
def storage(tmp_path: Path) -> LocalStorage:
    return LocalStorage(tmp_path)


@pytest.fixture
def write_directory(storage: LocalStorage) -> Callable[[str, str], None]:
    """Write the whitelist or the broadcast list into test storage."""

    def _write(which: str, content: str) -> None:
        path = storage.whitelist_path if which == "whitelist" else storage.broadcast_list_path
        path.write_text(content, encoding="utf-8")

    return _write


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def voice_api() -> FakeVoiceAPI:
    return FakeVoiceAPI()


@pytest_asyncio.fixture
async def http_client(voice_api: FakeVoiceAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(voice_api)) as client:
        yield client


@pytest.fixture
def signed_client(rsa_key: RSAPrivateKey, http_client: httpx.AsyncClient) -> SignedClient:
    """Client with limiters fast enough never to throttle a test."""
    return SignedClient(
        rsa_key,
        APPLICATION_ID,
        OUTBOUND_NUMBER,
        ORIGIN,
        http_client=http_client,
        call_limiter=TokenBucketLimiter(1000),
        get_limiter=TokenBucketLimiter(1000),
    )


@pytest.fixture
def orchestrator(signed_client: SignedClient, storage: LocalStorage) -> BroadcastOrchestrator:
    return BroadcastOrchestrator(signed_client, storage, calls_url="https://api.voice.test/v1/calls")
