"""Simple message lookup for user-visible notices and API responses."""

from __future__ import annotations

_MESSAGES: dict[str, str] = {
    "session.connected": "Connected to Realtime API",
    "session.established": "Connection established!",
    "session.channel_closed": "Data channel closed",
    "session.channel_error": "Data channel error: {error}",
    "session.disconnected": "Disconnected from Realtime API.",
    "session.connect_failed": "Failed to connect: {error}",
    "session.already_connected": "Already connected.",
    "session.mode_changed": "Turn detection: {mode}",
    "session.playback_changed": "Assistant audio: {state}",
    "transcript.inaudible": "[inaudible]",
    "catalog.no_matches": "No matching products found.",
    "catalog.unavailable": "The product catalog could not be reached.",
    "error.rate_limited": "Too many requests. Please try again later.",
    "error.catalog_not_ready": "Catalog is still loading. Please try again in a moment.",
    "error.internal": "Internal Server Error",
}


def msg(key: str, **kwargs: object) -> str:
    """Return a message by key, formatted with kwargs, or the key itself if not found."""
    template = _MESSAGES.get(key, key)
    if kwargs:
        return template.format(**kwargs)
    return template
