"""Tests for catalog document download."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from linkdex.catalog.fetcher import fetch_document
from linkdex.errors import FetchError

URL = "https://docs.example.com/pub?output=pdf"


def _response(status_code=200, content=b"%PDF-1.7"):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.content = content
    return response


@patch("linkdex.catalog.fetcher.requests.get")
def test_fetch_document_returns_bytes(mock_get):
    mock_get.return_value = _response()

    assert fetch_document(URL, timeout=5) == b"%PDF-1.7"

    args, kwargs = mock_get.call_args
    assert args[0] == URL
    assert kwargs["timeout"] == 5
    assert "User-Agent" in kwargs["headers"]


@patch("linkdex.catalog.fetcher.requests.get")
def test_fetch_document_http_error(mock_get):
    mock_get.return_value = _response(status_code=503, content=b"")

    with pytest.raises(FetchError) as excinfo:
        fetch_document(URL)

    assert excinfo.value.status_code == 503


@patch("linkdex.catalog.fetcher.requests.get")
def test_fetch_document_network_error(mock_get):
    mock_get.side_effect = requests.ConnectionError("connection refused")

    with pytest.raises(FetchError) as excinfo:
        fetch_document(URL)

    assert excinfo.value.status_code is None
    assert isinstance(excinfo.value.__cause__, requests.ConnectionError)


@patch("linkdex.catalog.fetcher.requests.get")
def test_fetch_document_rejects_non_http(mock_get):
    with pytest.raises(FetchError):
        fetch_document("file:///etc/passwd")
    mock_get.assert_not_called()


def test_fetch_document_uses_session():
    session = MagicMock()
    session.get.return_value = _response(content=b"data")

    assert fetch_document(URL, session=session) == b"data"
    session.get.assert_called_once()
