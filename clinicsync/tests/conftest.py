from __future__ import annotations

from datetime import date

import httpx
import pytest
import pytest_asyncio

from clinicsync.services.api_client import ConsultationApiClient
from clinicsync.services.credentials import StaticCredentialProvider
from clinicsync.tests.fake_backend import TEST_TOKEN, FakeConsultationBackend

BASE_URL = "http://testserver/api/v1"


@pytest.fixture
def today() -> date:
    return date.today()


@pytest.fixture
def backend(today: date) -> FakeConsultationBackend:
    return FakeConsultationBackend(today=today)


@pytest_asyncio.fixture
async def client(backend: FakeConsultationBackend) -> ConsultationApiClient:
    api_client = ConsultationApiClient(
        BASE_URL,
        credentials=StaticCredentialProvider(TEST_TOKEN),
        transport=httpx.ASGITransport(app=backend.app),
    )
    yield api_client
    await api_client.aclose()
