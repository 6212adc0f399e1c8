from typing import Any, List, Optional, Tuple
import time


def now_ms() -> int:
    return int(time.time() * 1000)


class BuzzEntry:
    def __init__(self, player_id: str, name: str, timestamp: int):
        self.player_id = player_id
        self.name = name  # snapshot at buzz time
        self.timestamp = timestamp

    def __repr__(self):
        return f"BuzzEntry({self.player_id!r}, {self.name!r}, {self.timestamp})"


class BuzzerRace:
    """Arrival list for the current question round.

    Entries are kept in the order ``record_buzz`` is called, which is the
    order the coordinator processed the buzzes; timestamps are informational.
    """

    def __init__(self, first_only: bool = False, clock=now_ms):
        self.first_only = first_only
        self.locked = False
        self.active_question: Optional[Any] = None
        self._entries: List[BuzzEntry] = []
        self._clock = clock

    @property
    def entries(self) -> Tuple[BuzzEntry, ...]:
        return tuple(self._entries)

    @property
    def winner(self) -> Optional[BuzzEntry]:
        return self._entries[0] if self._entries else None

    def activate(self, question: Any):
        self._entries = []
        self.locked = False
        self.active_question = question

    def reset(self):
        self._entries = []
        self.locked = False
        self.active_question = None

    def has_buzzed(self, player_id: str) -> bool:
        return any(e.player_id == player_id for e in self._entries)

    def record_buzz(self, player_id: str, name: str) -> Optional[BuzzEntry]:
        """Append a buzz, or return None if this player already buzzed.

        The first accepted buzz locks the race. Later buzzes from other
        players are still recorded unless ``first_only`` is set.
        """
        if self.has_buzzed(player_id):
            return None
        if self.first_only and self.locked:
            return None
        entry = BuzzEntry(player_id, name, self._clock())
        self._entries.append(entry)
        self.locked = True
        return entry
