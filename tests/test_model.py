"""Tests for the Ollama model client."""

from unittest.mock import MagicMock, patch

import pytest

from primer_cli.model import DEFAULT_MODEL, ModelError, OllamaClient


class TestOllamaClient:
    """Test OllamaClient methods."""

    def test_default_config(self):
        client = OllamaClient()
        assert client.model == DEFAULT_MODEL
        assert "11434" in client.base_url

    def test_custom_model_and_url(self):
        client = OllamaClient(model="codellama:13b", base_url="http://gpu-box:11434/")
        assert client.model == "codellama:13b"
        assert client.base_url == "http://gpu-box:11434"

    @patch("httpx.Client.get")
    def test_is_running_true(self, mock_get):
        mock_resp = MagicMock()
        mock_resp.status_code = 200
        mock_get.return_value = mock_resp
        assert OllamaClient().is_running() is True

    @patch("httpx.Client.get")
    def test_is_running_false(self, mock_get):
        from httpx import ConnectError

        mock_get.side_effect = ConnectError("connection refused")
        assert OllamaClient().is_running() is False

    @patch("httpx.Client.post")
    def test_generate_success(self, mock_post):
        mock_resp = MagicMock()
        mock_resp.status_code = 200
        mock_resp.json.return_value = {"response": "# Copilot Instructions\n\nUse pytest."}
        mock_post.return_value = mock_resp

        result = OllamaClient().generate("Describe this repo", system="be brief")
        assert "Use pytest" in result
        payload = mock_post.call_args.kwargs["json"]
        assert payload["system"] == "be brief"
        assert payload["stream"] is False

    @patch("httpx.Client.post")
    def test_generate_error(self, mock_post):
        mock_resp = MagicMock()
        mock_resp.status_code = 500
        mock_resp.text = "Internal server error"
        mock_post.return_value = mock_resp
        with pytest.raises(ModelError, match="500"):
            OllamaClient().generate("test prompt")

    @patch("httpx.Client.post")
    def test_generate_timeout(self, mock_post):
        from httpx import TimeoutException

        mock_post.side_effect = TimeoutException("timed out")
        with pytest.raises(ModelError, match="timed out"):
            OllamaClient().generate("test prompt")

    @patch("httpx.Client.post")
    def test_generate_connect_error(self, mock_post):
        from httpx import ConnectError

        mock_post.side_effect = ConnectError("refused")
        with pytest.raises(ModelError, match="Cannot connect"):
            OllamaClient().generate("test prompt")

    @patch("httpx.Client.post")
    def test_generate_malformed_body(self, mock_post):
        mock_resp = MagicMock()
        mock_resp.status_code = 200
        mock_resp.json.side_effect = ValueError("Expecting value")
        mock_post.return_value = mock_resp
        with pytest.raises(ModelError, match="malformed"):
            OllamaClient().generate("test prompt")

    def test_context_manager_closes(self):
        with patch("httpx.Client.close") as mock_close:
            with OllamaClient() as client:
                assert client.model == DEFAULT_MODEL
        mock_close.assert_called_once()
