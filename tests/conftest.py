"""Global test fixtures for IServ Tools."""

from pathlib import Path
from unittest.mock import Mock

import pytest
from pytest import fixture

from iserv_tools.session import IServSession

BASE_URL = "https://school.example/iserv"


def pytest_addoption(parser):
    """Add custom pytest command line options."""
    parser.addoption(
        "--e2e",
        action="store_true",
        default=False,
        help="run end-to-end tests",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "e2e: mark test as end-to-end test")


def pytest_collection_modifyitems(config, items):
    """Skip end-to-end tests unless --e2e option is used."""
    if config.getoption("--e2e"):
        # When --e2e is used, run all tests including end-to-end tests
        return

    skip_e2e = pytest.mark.skip(reason="need --e2e option to run")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


@fixture(scope="session")
def fixtures_dir() -> Path:
    """Return path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@fixture(scope="session")
def load_fixture(fixtures_dir):
    """Return a loader for HTML fixture pages by file stem."""

    def load(name: str) -> str:
        return (fixtures_dir / f"{name}.html").read_text(encoding="utf-8")

    return load


def build_response(
    text: str = "", status_code: int = 200, json_data=None, headers=None
):
    """Create a mock requests.Response."""
    response = Mock()
    response.text = text
    response.content = text.encode("utf-8")
    response.status_code = status_code
    response.headers = headers or {}
    response.json.return_value = json_data
    return response


@fixture
def mock_session():
    """Create mock IServSession that builds URLs like the real one."""
    session = Mock(spec=IServSession)

    def mock_url(*parts):
        return "/".join([BASE_URL] + [str(part) for part in parts])

    session.url.side_effect = mock_url
    return session


@fixture
def make_response():
    """Return a factory for mock requests.Response objects."""
    return build_response
