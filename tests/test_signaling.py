"""
Tests for credential fetching and the SDP offer/answer exchange.
"""

from unittest.mock import patch

import aiohttp
import pytest

from src.realtime.errors import CredentialError, TransportError
from src.realtime.signaling import CredentialProvider, SdpExchanger, extract_client_secret


class TestExtractClientSecret:
    """Tests for extract_client_secret()."""

    def test_present(self):
        assert extract_client_secret({"client_secret": {"value": "ek_123"}}) == "ek_123"

    @pytest.mark.parametrize("data", [
        {},
        {"client_secret": None},
        {"client_secret": {"value": ""}},
        {"client_secret": "ek_flat"},
        ["client_secret"],
        None,
    ])
    def test_missing(self, data):
        assert extract_client_secret(data) is None


class TestCredentialProvider:
    """Tests for CredentialProvider."""

    @pytest.mark.asyncio
    async def test_fetch(self, http_session):
        """The secret value is returned."""
        session_cm, session = http_session(json_data={"client_secret": {"value": "ek_abc"}})
        provider = CredentialProvider("http://backend.test/api/session", timeout_s=5)

        with patch("src.realtime.signaling.aiohttp.ClientSession", return_value=session_cm):
            assert await provider.fetch() == "ek_abc"

        session.get.assert_called_once_with("http://backend.test/api/session")

    @pytest.mark.asyncio
    async def test_missing_secret(self, http_session):
        """A response without a secret is a CredentialError."""
        session_cm, _ = http_session(json_data={"error": "nope"})
        provider = CredentialProvider("http://backend.test/api/session")

        with patch("src.realtime.signaling.aiohttp.ClientSession", return_value=session_cm):
            with pytest.raises(CredentialError, match="No ephemeral key"):
                await provider.fetch()

    @pytest.mark.asyncio
    async def test_http_failure(self, http_session):
        """HTTP errors become CredentialError."""
        session_cm, _ = http_session(status_error=aiohttp.ClientError("500"))
        provider = CredentialProvider("http://backend.test/api/session")

        with patch("src.realtime.signaling.aiohttp.ClientSession", return_value=session_cm):
            with pytest.raises(CredentialError):
                await provider.fetch()


class TestSdpExchanger:
    """Tests for SdpExchanger."""

    @pytest.mark.asyncio
    async def test_exchange(self, http_session):
        """The offer is posted with bearer auth and the answer returned."""
        session_cm, session = http_session(text_data="v=0\r\nanswer\r\n")
        exchanger = SdpExchanger("https://realtime.test/v1/realtime?model=m", timeout_s=5)

        with patch("src.realtime.signaling.aiohttp.ClientSession", return_value=session_cm):
            answer = await exchanger.exchange("v=0\r\noffer\r\n", "ek_abc")

        assert answer == "v=0\r\nanswer\r\n"
        args, kwargs = session.post.call_args
        assert args == ("https://realtime.test/v1/realtime?model=m",)
        assert kwargs["data"] == "v=0\r\noffer\r\n"
        assert kwargs["headers"]["Authorization"] == "Bearer ek_abc"
        assert kwargs["headers"]["Content-Type"] == "application/sdp"

    @pytest.mark.asyncio
    async def test_empty_answer(self, http_session):
        """An empty body is a TransportError."""
        session_cm, _ = http_session(text_data="  ")
        exchanger = SdpExchanger("https://realtime.test/v1/realtime?model=m")

        with patch("src.realtime.signaling.aiohttp.ClientSession", return_value=session_cm):
            with pytest.raises(TransportError, match="empty"):
                await exchanger.exchange("offer", "ek_abc")

    @pytest.mark.asyncio
    async def test_http_failure(self, http_session):
        """HTTP errors become TransportError."""
        session_cm, _ = http_session(status_error=aiohttp.ClientError("401"))
        exchanger = SdpExchanger("https://realtime.test/v1/realtime?model=m")

        with patch("src.realtime.signaling.aiohttp.ClientSession", return_value=session_cm):
            with pytest.raises(TransportError):
                await exchanger.exchange("offer", "ek_abc")
