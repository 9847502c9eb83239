"""
Conversation Transcript Module

Ordered, mutable store of transcript entries built from streamed events.

Entries are keyed by the id the realtime service assigns to a conversation
item. Each entry gets a sequence number when it is first created; display
order is always by that sequence, regardless of how updates interleave.

The store never creates entries implicitly: callers check exists() and call
create() before update(), so update() on an unknown id is a safe no-op.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from src.logger import get_logger

logger = get_logger(__name__)

EMPHASIS_PATTERN = re.compile(r"\*\*(.*?)\*\*")

ANSI_BOLD = "\033[1m"
ANSI_RESET = "\033[0m"


class Role(str, Enum):
    """Speaker of a transcript entry."""
    USER = "user"
    ASSISTANT = "assistant"

    @property
    def label(self) -> str:
        return "User" if self is Role.USER else "Assistant"


class UpdateMode(str, Enum):
    """How update() combines new text with the stored text."""
    APPEND = "append"
    REPLACE = "replace"


@dataclass
class TranscriptEntry:
    """One logical utterance tracked by stable id."""
    id: str
    role: Role
    text: str
    sequence: int

    def render(self, strong: Optional[Callable[[str], str]] = None) -> str:
        """Render as 'Sender: text' with emphasis spans passed through ``strong`` (ANSI bold by default)."""
        return f"{self.role.label}: {render_markup(self.text, strong or ansi_strong)}"


@dataclass(frozen=True)
class TextSpan:
    """A run of display text, optionally strongly emphasized."""
    text: str
    strong: bool = False


TranscriptListener = Callable[[TranscriptEntry], None]


class TranscriptStore:
    """
    Ordered collection of transcript entries keyed by id.

    Listeners registered with subscribe() are called with the changed entry
    after every successful create() or update().

    Usage:
        store = TranscriptStore()
        store.create("item_1", Role.USER, "He")
        store.update("item_1", "llo", UpdateMode.APPEND)
        [e.text for e in store.ordered_entries()]  # ["Hello"]
    """

    def __init__(self) -> None:
        self._entries: Dict[str, TranscriptEntry] = {}
        self._next_sequence = 0
        self._listeners: List[TranscriptListener] = []

    def subscribe(self, listener: TranscriptListener) -> None:
        """Register a callback for entry changes."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: TranscriptListener) -> None:
        self._listeners = [l for l in self._listeners if l != listener]

    def exists(self, item_id: str) -> bool:
        """True iff an entry with this id was created."""
        return item_id in self._entries

    def get(self, item_id: str) -> Optional[TranscriptEntry]:
        return self._entries.get(item_id)

    def create(self, item_id: str, role: Role, initial_text: str = "") -> bool:
        """
        Create an entry with the next sequence number.

        Args:
            item_id: Stable id assigned by the realtime service
            role: Speaker role
            initial_text: Starting text

        Returns:
            True if a new entry was created, False if the id already existed
        """
        if self.exists(item_id):
            return False

        entry = TranscriptEntry(
            id=item_id,
            role=Role(role),
            text=initial_text,
            sequence=self._next_sequence,
        )
        self._next_sequence += 1
        self._entries[item_id] = entry
        self._notify(entry)
        return True

    def update(self, item_id: str, text: str, mode: UpdateMode = UpdateMode.REPLACE) -> bool:
        """
        Append to or replace the text of an existing entry.

        Returns:
            True if the entry existed and was updated
        """
        entry = self._entries.get(item_id)
        if entry is None:
            logger.debug(f"Ignoring update for unknown transcript item {item_id}")
            return False

        if UpdateMode(mode) is UpdateMode.APPEND:
            entry.text += text
        else:
            entry.text = text
        self._notify(entry)
        return True

    def ordered_entries(self) -> List[TranscriptEntry]:
        """Entries sorted by sequence ascending."""
        return sorted(self._entries.values(), key=lambda e: e.sequence)

    def clear(self) -> None:
        """Drop all entries. Sequence numbers are not reused."""
        self._entries.clear()

    def _notify(self, entry: TranscriptEntry) -> None:
        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception as e:
                logger.error(f"Transcript listener error: {e}")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._entries


# ============================================================================
# Markup rendering
# ============================================================================

def parse_emphasis(text: str) -> List[TextSpan]:
    """
    Split raw transcript text into plain and strong spans.

    ``**word**`` becomes a strong span containing ``word``. Unterminated
    markers are left as literal text so partial deltas render sensibly.
    """
    spans: List[TextSpan] = []
    position = 0
    for match in EMPHASIS_PATTERN.finditer(text):
        if match.start() > position:
            spans.append(TextSpan(text[position:match.start()]))
        spans.append(TextSpan(match.group(1), strong=True))
        position = match.end()
    if position < len(text):
        spans.append(TextSpan(text[position:]))
    return spans


def render_markup(text: str, strong: Callable[[str], str]) -> str:
    """Render text with each strong span transformed by ``strong``."""
    return "".join(strong(span.text) if span.strong else span.text for span in parse_emphasis(text))


def ansi_strong(text: str) -> str:
    """Wrap text in ANSI bold escapes for terminals."""
    return f"{ANSI_BOLD}{text}{ANSI_RESET}"
