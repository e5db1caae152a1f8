from pathlib import Path
from typing import Any

import pytest
import yaml
from faker import Faker
from httpx import ASGITransport, AsyncClient

import fakeman.main
import tfforeman.logstreams
from tfforeman.models import ForemanConfig

faker = Faker()

BASE_URL = "https://foreman.example.com"


def pytest_configure(*args, **kwargs):
    """Pytest calls this hook on startup."""
    # Set log level to DEBUG for all unit tests.
    tfforeman.logstreams.setup("DEBUG")


def load_specimen(name: str) -> Any:
    return yaml.safe_load((Path(__file__).parent / "support" / name).read_text())


def random_name() -> str:
    return f"{faker.unique.first_name().lower()}.{faker.domain_name()}"


@pytest.fixture
async def fcfg(respx_mock):
    """Return a connection whose requests are intercepted by `respx`."""
    async with AsyncClient(base_url=BASE_URL) as client:
        yield ForemanConfig(
            name="foreman.example.com",
            client=client,
            location_id=1,
            organization_id=2,
        )


@pytest.fixture
async def fakecfg():
    """Return a connection to a fresh in-memory Foreman."""
    transport = ASGITransport(app=fakeman.main.make_app())
    async with AsyncClient(transport=transport, base_url="http://fakeman") as client:
        yield ForemanConfig(
            name="fakeman",
            client=client,
            location_id=1,
            organization_id=2,
            per_page=3,
        )
