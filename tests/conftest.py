"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import json
import os
import sys
import pytest
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Dict, List
from unittest.mock import AsyncMock, MagicMock

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment
os.environ["APP_ENV"] = "test"
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["SESSION_ENDPOINT"] = "http://testserver/api/session"
os.environ["RECOMMEND_ENDPOINT"] = "http://testserver/api/recommend"
os.environ["TURN_DETECTION_MODE"] = "server_vad"
os.environ["INVENTORY_CSV"] = str(project_root / "data" / "inventory.csv")
os.environ["RATE_LIMIT_REQUESTS"] = "5"
os.environ["AUDIO_PLAYBACK"] = "true"
os.environ["LOG_LEVEL"] = "WARNING"

ANSWER_SDP = "v=0\r\no=- 0 0 IN IP4 127.0.0.1\r\ns=-\r\nt=0 0\r\n"


# ============================================================================
# Fake WebRTC objects
# ============================================================================

class FakeEmitter:
    """Minimal pyee-style .on()/emit() used by aiortc objects."""

    def __init__(self):
        self.handlers: Dict[str, List[Callable]] = {}

    def on(self, event: str, handler: Callable = None):
        self.handlers.setdefault(event, []).append(handler)
        return handler

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self.handlers.get(event, [])):
            handler(*args)


class FakeDataChannel(FakeEmitter):
    """Data channel whose lifecycle is driven by the test."""

    def __init__(self, label: str):
        super().__init__()
        self.label = label
        self.readyState = "connecting"
        self.sent: List[str] = []

    def send(self, data: str) -> None:
        self.sent.append(data)

    def close(self) -> None:
        if self.readyState != "closed":
            self.readyState = "closed"
            self.emit("close")

    # Test drivers
    def open(self) -> None:
        self.readyState = "open"
        self.emit("open")

    def receive(self, payload: Any) -> None:
        self.emit("message", payload if isinstance(payload, str) else json.dumps(payload))

    @property
    def messages(self) -> List[Dict[str, Any]]:
        return [json.loads(data) for data in self.sent]

    def types(self) -> List[str]:
        return [m["type"] for m in self.messages]


class FakePeer(FakeEmitter):
    """Peer connection that records negotiation calls."""

    def __init__(self):
        super().__init__()
        self.tracks: List[Any] = []
        self.channel = None
        self.localDescription = None
        self.remoteDescription = None
        self.connectionState = "new"
        self.close_calls = 0

    def addTrack(self, track) -> None:
        self.tracks.append(track)

    def createDataChannel(self, label: str) -> FakeDataChannel:
        self.channel = FakeDataChannel(label)
        return self.channel

    async def createOffer(self):
        return SimpleNamespace(sdp="v=0\r\no=- offer\r\n", type="offer")

    async def setLocalDescription(self, description) -> None:
        self.localDescription = description

    async def setRemoteDescription(self, description) -> None:
        self.remoteDescription = description

    async def close(self) -> None:
        self.close_calls += 1
        self.connectionState = "closed"


class FakeMicrophone:
    def __init__(self):
        self.track = SimpleNamespace(kind="audio")
        self.enabled = False
        self.stopped = False

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    def stop(self) -> None:
        self.stopped = True


class FakePlayback:
    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.attached: List[Any] = []
        self.stop_calls = 0

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    async def attach(self, track) -> None:
        self.attached.append(track)

    async def stop(self) -> None:
        self.stop_calls += 1


class FakeTransport:
    """
    Supplies every collaborator of SessionNegotiator and keeps handles to
    what was created, so tests can drive the channel.
    """

    def __init__(self):
        self.peers: List[FakePeer] = []
        self.microphones: List[FakeMicrophone] = []
        self.credentials = MagicMock()
        self.credentials.fetch = AsyncMock(return_value="ek_test_secret")
        self.exchanger = MagicMock()
        self.exchanger.exchange = AsyncMock(return_value=ANSWER_SDP)
        self.playback = FakePlayback()

    def peer_factory(self) -> FakePeer:
        peer = FakePeer()
        self.peers.append(peer)
        return peer

    def microphone_factory(self) -> FakeMicrophone:
        microphone = FakeMicrophone()
        self.microphones.append(microphone)
        return microphone

    @property
    def peer(self) -> FakePeer:
        return self.peers[-1]

    @property
    def channel(self) -> FakeDataChannel:
        return self.peer.channel

    @property
    def microphone(self) -> FakeMicrophone:
        return self.microphones[-1]

    def negotiator(self, listener):
        from src.realtime.negotiator import SessionNegotiator

        return SessionNegotiator(
            listener,
            credentials=self.credentials,
            exchanger=self.exchanger,
            peer_factory=self.peer_factory,
            microphone_factory=self.microphone_factory,
            playback=self.playback,
        )


class RecordingSender:
    """Send callable that records messages while "open"."""

    def __init__(self, open_: bool = True):
        self.open = open_
        self.messages: List[Dict[str, Any]] = []

    def __call__(self, message: Dict[str, Any]) -> bool:
        if not self.open:
            return False
        self.messages.append(message)
        return True

    def is_open(self) -> bool:
        return self.open

    def types(self) -> List[str]:
        return [m["type"] for m in self.messages]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def transport():
    """Fake WebRTC transport for the negotiator."""
    return FakeTransport()


@pytest.fixture
def sender():
    """Open recording sender."""
    return RecordingSender()


@pytest.fixture
def echo_registry():
    """Tool registry with a single echo tool."""
    from src.realtime.tools import ToolRegistry, ToolSpec

    registry = ToolRegistry()

    async def echo(arguments):
        return {"echo": arguments}

    registry.register(ToolSpec("echo", "Echo the arguments back"), echo)
    return registry


@pytest.fixture
def sample_recommendation():
    """A recommend endpoint response body."""
    return {
        "success": True,
        "recommendations": [
            {
                "Category": "Footwear",
                "Subcategory": "Running",
                "Gender": "Unisex",
                "Product Name": "Runfalcon 3",
                "Brand": "Adidas",
                "Price (AUD)": "$89.99",
                "Short Description": "Lightweight everyday running shoe",
                "SKU": "AD-RF3-U",
            }
        ],
    }


@pytest.fixture
def catalog_client(sample_recommendation):
    """Catalog client stub returning one recommendation."""
    client = MagicMock()
    client.recommend = AsyncMock(return_value=sample_recommendation)
    return client


@pytest.fixture
def inventory_csv(tmp_path):
    """Small inventory CSV file."""
    content = (
        "Category,Subcategory,Gender,Product Name,Brand,Price (AUD),Short Description,SKU\n"
        "Footwear,Running,Men,Pegasus 41,Nike,$189.99,Responsive cushioning,NK-PEG41-M\n"
        "Footwear,Running,Unisex,Runfalcon 3,Adidas,$89.99,Lightweight running shoe,AD-RF3-U\n"
        "Apparel,Hoodies,Unisex,Essentials Fleece Hoodie,Adidas,$80.00,Cotton fleece hoodie,AD-EFH-U\n"
        "Equipment,Fitness,Unisex,Forerunner 165,Garmin,\"$1,099.00\",GPS running watch,GM-FR165-U\n"
    )
    filepath = tmp_path / "inventory.csv"
    filepath.write_text(content, encoding="utf-8")
    return filepath


def fake_http_session(json_data: Any = None, text_data: str = "", status_error: Exception = None):
    """
    Build a stand-in for aiohttp.ClientSession(...).

    Returns:
        (session context manager, session) so tests can inspect calls
    """
    response = MagicMock()
    response.raise_for_status = MagicMock(side_effect=status_error)
    response.json = AsyncMock(return_value=json_data)
    response.text = AsyncMock(return_value=text_data)

    response_cm = MagicMock()
    response_cm.__aenter__ = AsyncMock(return_value=response)
    response_cm.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.get = MagicMock(return_value=response_cm)
    session.post = MagicMock(return_value=response_cm)

    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=session)
    session_cm.__aexit__ = AsyncMock(return_value=False)
    return session_cm, session


@pytest.fixture
def http_session():
    """Factory for fake aiohttp sessions."""
    return fake_http_session
