"""Unit tests for the classification service client."""

import json
import urllib.error
from unittest.mock import MagicMock

import pytest

from mailsorter.classifier.client import ClassifierClient
from mailsorter.config import Settings
from mailsorter.exceptions import ClassifierError, ClassifierTimeoutError, ConfigurationError


@pytest.fixture
def urlopen(monkeypatch) -> MagicMock:
    """Replace urlopen for the client module; configure per test."""
    fake = MagicMock()
    monkeypatch.setattr("mailsorter.classifier.client.urllib.request.urlopen", fake)
    return fake


def _answer(urlopen: MagicMock, body: bytes) -> None:
    urlopen.return_value.__enter__.return_value.read.return_value = body


class TestClassifierClient:
    """Test suite for ClassifierClient class."""

    def test_missing_api_key_is_a_configuration_error(self) -> None:
        settings = Settings(_env_file=None, classifier_api_key=None)

        with pytest.raises(ConfigurationError):
            ClassifierClient(settings)

    def test_build_payload_shape(self, mock_settings) -> None:
        client = ClassifierClient(mock_settings)

        payload = client.build_payload("classify this")

        assert payload == {
            "model": "test-model",
            "messages": [{"role": "user", "content": "classify this"}],
            "temperature": 0.3,
            "max_tokens": 500,
        }

    @pytest.mark.asyncio
    async def test_complete_returns_first_choice_content(self, mock_settings, urlopen) -> None:
        _answer(
            urlopen,
            json.dumps(
                {"choices": [{"message": {"content": '{"action": "keep"}'}}, {"message": {"content": "ignored"}}]}
            ).encode("utf-8"),
        )
        client = ClassifierClient(mock_settings)

        raw = await client.complete("prompt")

        assert raw == '{"action": "keep"}'
        req = urlopen.call_args.args[0]
        assert urlopen.call_args.kwargs["timeout"] == 30
        assert req.get_method() == "POST"
        assert req.get_header("Authorization") == "Bearer test-key"
        assert json.loads(req.data)["messages"][0]["content"] == "prompt"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [TimeoutError("read timed out"), urllib.error.URLError(TimeoutError("connect timed out"))],
    )
    async def test_timeout_is_reported_as_classifier_timeout(self, mock_settings, urlopen, error) -> None:
        urlopen.side_effect = error
        client = ClassifierClient(mock_settings)

        with pytest.raises(ClassifierTimeoutError):
            await client.complete("prompt")

    @pytest.mark.asyncio
    async def test_non_2xx_is_a_classifier_error(self, mock_settings, urlopen) -> None:
        urlopen.side_effect = urllib.error.HTTPError(
            mock_settings.classifier_api_url, 500, "Server Error", {}, None
        )
        client = ClassifierClient(mock_settings)

        with pytest.raises(ClassifierError) as excinfo:
            await client.complete("prompt")
        assert not isinstance(excinfo.value, ClassifierTimeoutError)

    @pytest.mark.asyncio
    async def test_unreachable_is_a_classifier_error(self, mock_settings, urlopen) -> None:
        urlopen.side_effect = urllib.error.URLError(ConnectionRefusedError("refused"))
        client = ClassifierClient(mock_settings)

        with pytest.raises(ClassifierError) as excinfo:
            await client.complete("prompt")
        assert not isinstance(excinfo.value, ClassifierTimeoutError)

    @pytest.mark.asyncio
    async def test_unexpected_payload_is_a_classifier_error(self, mock_settings, urlopen) -> None:
        _answer(urlopen, b'{"choices": []}')
        client = ClassifierClient(mock_settings)

        with pytest.raises(ClassifierError):
            await client.complete("prompt")

    @pytest.mark.asyncio
    async def test_non_json_body_is_a_classifier_error(self, mock_settings, urlopen) -> None:
        _answer(urlopen, b"<html>bad gateway</html>")
        client = ClassifierClient(mock_settings)

        with pytest.raises(ClassifierError):
            await client.complete("prompt")
