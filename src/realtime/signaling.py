"""
Signaling Module

HTTP calls that bracket WebRTC negotiation:
- fetching an ephemeral credential from the backend session endpoint
- posting the local SDP offer to the realtime service and reading the answer

Both use aiohttp with a bounded total timeout.
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp

from src.config import settings
from src.logger import get_logger

from .errors import CredentialError, TransportError

logger = get_logger(__name__)


def extract_client_secret(data: Any) -> Optional[str]:
    """Return client_secret.value from a session response, if present."""
    if not isinstance(data, dict):
        return None
    secret = data.get("client_secret")
    if isinstance(secret, dict):
        value = secret.get("value")
        if isinstance(value, str) and value:
            return value
    return None


class CredentialProvider:
    """
    Fetches a short-lived client secret from the backend.

    Usage:
        provider = CredentialProvider("http://localhost:3000/api/session")
        secret = await provider.fetch()
    """

    def __init__(self, endpoint: Optional[str] = None, timeout_s: Optional[float] = None):
        self._endpoint = endpoint or settings.realtime.session_endpoint
        self._timeout = aiohttp.ClientTimeout(total=timeout_s or settings.realtime.http_timeout_s)

    async def fetch(self) -> str:
        """
        Request an ephemeral credential.

        Raises:
            CredentialError: On HTTP failure or when the secret is missing
        """
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.get(self._endpoint) as response:
                    response.raise_for_status()
                    data: Dict[str, Any] = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise CredentialError(f"Session endpoint request failed: {e}") from e

        secret = extract_client_secret(data)
        if not secret:
            raise CredentialError("No ephemeral key found in server response")

        logger.debug("Ephemeral credential obtained")
        return secret


class SdpExchanger:
    """
    Performs the single offer/answer exchange with the realtime service.

    Args:
        url: Full SDP endpoint including the model query parameter
        timeout_s: Total request timeout
    """

    def __init__(self, url: Optional[str] = None, timeout_s: Optional[float] = None):
        self._url = url or settings.openai.sdp_url
        self._timeout = aiohttp.ClientTimeout(total=timeout_s or settings.realtime.http_timeout_s)

    async def exchange(self, offer_sdp: str, secret: str) -> str:
        """
        Post the local offer and return the remote answer SDP.

        Raises:
            TransportError: On HTTP failure or an empty answer
        """
        headers = {
            "Authorization": f"Bearer {secret}",
            "Content-Type": "application/sdp",
        }
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(self._url, data=offer_sdp, headers=headers) as response:
                    response.raise_for_status()
                    answer = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"SDP exchange failed: {e}") from e

        if not answer.strip():
            raise TransportError("Realtime service returned an empty SDP answer")
        return answer
