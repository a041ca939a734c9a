"""
Pytest fixtures shared by the sitecms tests.

Provides an in-memory cache, a fresh broadcaster, a mocked requests
session and a factory for fake HTTP responses.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from sitecms.cache import LocalCache
from sitecms.client import CMSClient
from sitecms.config import reset_config
from sitecms.events import ChangeBroadcaster
from sitecms.sections import SectionRegistry
from sitecms.uploads import UploadClient

BASE_URL = 'http://test-cms:8080'


def build_response(status_code=200, json_data=None, text=None, reason='OK'):
    """Build a MagicMock that behaves like a requests.Response."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = reason

    if json_data is not None:
        response.json.return_value = json_data
        response.text = json.dumps(json_data)
    else:
        response.json.side_effect = ValueError("No JSON object could be decoded")
        response.text = text or ''

    return response


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Each test starts without a global config or env overrides."""
    for name in ('SITECMS_API_URL', 'SITECMS_CACHE_DIR', 'SITECMS_LOG_LEVEL'):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def make_response():
    """Factory fixture for fake HTTP responses."""
    return build_response


@pytest.fixture
def mock_session():
    """A mocked requests.Session."""
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def cache():
    """In-memory cache."""
    return LocalCache()


@pytest.fixture
def broadcaster():
    """Isolated broadcaster (not the global one)."""
    return ChangeBroadcaster()


@pytest.fixture
def registry():
    """Section shapes from the bundled sections.yaml."""
    return SectionRegistry.load()


@pytest.fixture
def cms_client(cache, broadcaster, mock_session):
    """CMSClient wired to the in-memory cache and mocked session."""
    return CMSClient(
        base_url=BASE_URL,
        cache=cache,
        broadcaster=broadcaster,
        timeout=5,
        session=mock_session,
    )


@pytest.fixture
def messages():
    """Collects user-facing messages from the upload client."""
    return []


@pytest.fixture
def upload_client(mock_session, messages):
    """UploadClient wired to the mocked session."""
    return UploadClient(
        base_url=BASE_URL,
        session=mock_session,
        timeout=5,
        max_document_size=10 * 1024 * 1024,
        on_message=messages.append,
    )
