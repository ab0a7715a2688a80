"""Shared helpers for the StreamHub test suite."""

from typing import Callable, List
from urllib.parse import parse_qs

import httpx
import pytest

from streamhub.core.credentials import DebridCredentials
from streamhub.services.realdebrid import RealDebridService

BASE_URL = "https://rd.test/rest/1.0"
INFO_HASH = "dd8255ecdc7ca55fb0bbf81323d87062db1f6d1c"
MAGNET = f"magnet:?xt=urn:btih:{INFO_HASH}&dn=Movie+Title"


class RecordingSleep:
    """Stand-in for asyncio.sleep that returns immediately and records delays."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


def form(request: httpx.Request) -> dict:
    """Decode a form-encoded request body into a flat dict."""
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_service() -> Callable[..., RealDebridService]:
    """Build a RealDebridService whose HTTP traffic goes to `handler`."""

    def _make(handler, token: str = "TOKEN") -> RealDebridService:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return RealDebridService(DebridCredentials(token=token), base_url=BASE_URL, client=client)

    return _make
