"""Tests for proof sources."""

import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest
from creatorflow.errors import ProofNotFoundYet
from creatorflow.proof.sources import HttpProofSource, InboxProofSource, ProofSourceConfig

_CONFIG = ProofSourceConfig(endpoint="https://proofs.example.com/api/", api_key="secret")


def _response(payload: object) -> MagicMock:
    mock_response = MagicMock()
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    mock_response.read.return_value = body
    mock_response.__enter__ = lambda s: s
    mock_response.__exit__ = MagicMock(return_value=False)
    return mock_response


class TestInboxProofSource:
    def test_deposit_and_fetch(self):
        source = InboxProofSource()
        assert source.fetch_spark_code("s") is None
        source.deposit_spark_code("s", "CODE")
        source.deposit_tiktok_link("s", "https://tiktok.com/v/1")
        assert source.fetch_spark_code("s") == "CODE"
        assert source.fetch_tiktok_link("s") == "https://tiktok.com/v/1"

    def test_discard(self):
        source = InboxProofSource()
        source.deposit_spark_code("s", "CODE")
        source.discard("s")
        assert source.fetch_spark_code("s") is None


class TestProofSourceConfig:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CREATORFLOW_PROOF_ENDPOINT", "https://p.example.com")
        monkeypatch.setenv("CREATORFLOW_PROOF_API_KEY", "k")
        config = ProofSourceConfig.from_env()
        assert config.is_configured
        assert config.api_key == "k"

    def test_not_configured(self, monkeypatch):
        monkeypatch.delenv("CREATORFLOW_PROOF_ENDPOINT", raising=False)
        assert not ProofSourceConfig.from_env().is_configured


class TestHttpProofSource:
    def test_fetch_spark_code_request(self):
        source = HttpProofSource(_CONFIG)
        with patch("urllib.request.urlopen", return_value=_response({"sparkCode": "SPARK123"})) as mock_urlopen:
            assert source.fetch_spark_code("sub 1") == "SPARK123"

        req = mock_urlopen.call_args[0][0]
        assert req.full_url == "https://proofs.example.com/api/submissions/sub%201/spark-code"
        assert req.method == "GET"
        assert req.get_header("Authorization") == "Bearer secret"
        assert mock_urlopen.call_args[1]["timeout"] == 10.0

    def test_fetch_tiktok_link(self):
        source = HttpProofSource(_CONFIG)
        payload = {"tiktokLink": "https://www.tiktok.com/@c/video/1"}
        with patch("urllib.request.urlopen", return_value=_response(payload)) as mock_urlopen:
            assert source.fetch_tiktok_link("sub-1") == "https://www.tiktok.com/@c/video/1"
        assert mock_urlopen.call_args[0][0].full_url.endswith("/submissions/sub-1/tiktok-link")

    def test_empty_value_is_not_yet(self):
        source = HttpProofSource(_CONFIG)
        with patch("urllib.request.urlopen", return_value=_response({"sparkCode": ""})):
            assert source.fetch_spark_code("sub-1") is None

    def test_404_is_not_yet(self):
        source = HttpProofSource(_CONFIG)
        error = urllib.error.HTTPError("url", 404, "Not Found", {}, None)
        with patch("urllib.request.urlopen", side_effect=error):
            assert source.fetch_spark_code("sub-1") is None

    def test_server_error_raises(self):
        source = HttpProofSource(_CONFIG)
        error = urllib.error.HTTPError("url", 503, "Unavailable", {}, None)
        with patch("urllib.request.urlopen", side_effect=error):
            with pytest.raises(ProofNotFoundYet, match="503"):
                source.fetch_spark_code("sub-1")

    def test_timeout_raises(self):
        source = HttpProofSource(_CONFIG)
        with patch("urllib.request.urlopen", side_effect=TimeoutError("slow")):
            with pytest.raises(ProofNotFoundYet):
                source.fetch_tiktok_link("sub-1")

    def test_no_auth_header_without_key(self):
        source = HttpProofSource(ProofSourceConfig(endpoint="https://proofs.example.com"))
        with patch("urllib.request.urlopen", return_value=_response({"sparkCode": "X"})) as mock_urlopen:
            source.fetch_spark_code("sub-1")
        assert mock_urlopen.call_args[0][0].get_header("Authorization") is None

    def test_html_body_raises(self):
        source = HttpProofSource(_CONFIG)
        with patch("urllib.request.urlopen", return_value=_response(b"<html>bad gateway</html>")):
            with pytest.raises(ProofNotFoundYet, match="unreadable"):
                source.fetch_spark_code("sub-1")

    def test_non_object_body_is_not_yet(self):
        source = HttpProofSource(_CONFIG)
        with patch("urllib.request.urlopen", return_value=_response(["x"])):
            assert source.fetch_spark_code("sub-1") is None
