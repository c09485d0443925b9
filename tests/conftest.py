"""Shared fixtures for apibind tests.

The sample definition (tests/sample_service.py) is generated once per
session into a temporary directory; the generated modules are imported from
there. App and client fixtures are per-test so service state never leaks.
"""

from __future__ import annotations

import importlib.util
import sys
from pathlib import Path
from types import ModuleType, SimpleNamespace

import httpx
import pytest

from apibind.codegen import generate
from apibind.config import GeneratorConfig
from apibind.loader import load_definition
from apibind.service_builder import build_services
from sample_service import UserService

SAMPLE_MODULE = "sample_service"
BASE_URL = "http://testserver"


def import_generated(name: str, path: Path) -> ModuleType:
    """Import a generated module from an arbitrary file location."""
    spec = importlib.util.spec_from_file_location(name, path)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


# ---------------------------------------------------------------------------
# Parsed definition
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def definition():
    return load_definition(SAMPLE_MODULE)


@pytest.fixture(scope="session")
def user_service_spec(definition):
    return build_services(definition, ["UserService"])[0]


# ---------------------------------------------------------------------------
# Generated bindings: written and imported once
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def generated(tmp_path_factory, user_service_spec):
    """Generate server and client modules for UserService and import them."""
    out = tmp_path_factory.mktemp("generated")
    generate([user_service_spec], GeneratorConfig(output_dir=out))
    return SimpleNamespace(
        out=out,
        server=import_generated("user_service_server", out / "user_service_server.py"),
        client=import_generated("user_service_client", out / "user_service_client.py"),
    )


# ---------------------------------------------------------------------------
# Running app: fresh service state per test
# ---------------------------------------------------------------------------

@pytest.fixture
def service():
    return UserService()


@pytest.fixture
def app(generated, service):
    return generated.server.create_app(service)


@pytest.fixture
async def http(app):
    """Raw httpx client talking to the app in-process."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url=BASE_URL
    ) as client:
        yield client


@pytest.fixture
def api_client(generated, http):
    """Generated client sharing the in-process transport."""
    return generated.client.UserServiceClient.with_client(BASE_URL, http)


@pytest.fixture
def mock_client(generated):
    """Build a generated client backed by an httpx.MockTransport handler."""

    def _make(handler):
        transport = httpx.MockTransport(handler)
        return generated.client.UserServiceClient.with_client(
            BASE_URL, httpx.AsyncClient(transport=transport)
        )

    return _make
