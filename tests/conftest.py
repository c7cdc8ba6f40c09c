from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from cidgate.common.settings import ProxySettings
from cidgate.gateway.app import create_app
from tests.utils.gateway import GROVE_ORIGIN, IPFS_ORIGIN, FakeGateway


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def settings() -> ProxySettings:
    return ProxySettings(
        default_ipfs_gateway=IPFS_ORIGIN,
        default_grove_gateway=GROVE_ORIGIN,
        metrics_token="metrics-secret",
    )


@pytest.fixture
def client(settings: ProxySettings, gateway: FakeGateway) -> Iterator[TestClient]:
    app = create_app(settings, transport=gateway.transport())
    with TestClient(app) as test_client:
        yield test_client
