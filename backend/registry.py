from typing import Dict, List, Optional, Tuple


class PlayerIdentity:
    """A durable player record, independent of any single connection."""

    def __init__(self, player_id: str, name: str, session_id: str, score: int = 0):
        self.player_id = player_id
        self.name = name
        self.score = score
        self.session_id = session_id

    def __repr__(self):
        return f"PlayerIdentity({self.player_id!r}, {self.name!r}, score={self.score})"


class IdentityRegistry:
    """Players keyed by transport session id, looked up by player id.

    Lookups by player id scan the session-keyed dict; a player id must be
    located before any mutation that could otherwise create a duplicate.
    """

    def __init__(self):
        self._by_session: Dict[str, PlayerIdentity] = {}

    def __len__(self) -> int:
        return len(self._by_session)

    def upsert_on_join(self, player_id: str, name: str,
                       session_id: str) -> Tuple[PlayerIdentity, bool]:
        """Bind ``session_id`` to ``player_id``. Returns (identity, rebound).

        On rebind the stored name and score are kept and ``name`` is ignored.
        """
        existing = self.find_by_player_id(player_id)
        if existing is None:
            identity = PlayerIdentity(player_id, name, session_id)
            self._by_session[session_id] = identity
            return identity, False

        # Drop every entry still indexed by an old session for this player
        stale = [sid for sid, p in self._by_session.items() if p.player_id == player_id]
        for sid in stale:
            del self._by_session[sid]
        existing.session_id = session_id
        self._by_session[session_id] = existing
        return existing, True

    def find_by_session_id(self, session_id: str) -> Optional[PlayerIdentity]:
        return self._by_session.get(session_id)

    def find_by_player_id(self, player_id: str) -> Optional[PlayerIdentity]:
        for identity in self._by_session.values():
            if identity.player_id == player_id:
                return identity
        return None

    def adjust_score(self, player_id: str, delta: int) -> Optional[PlayerIdentity]:
        identity = self.find_by_player_id(player_id)
        if identity is None:
            return None
        identity.score += delta
        return identity

    def list_deduplicated(self) -> List[PlayerIdentity]:
        """One identity per player id; the first in iteration order wins."""
        seen = set()
        result = []
        for identity in self._by_session.values():
            if identity.player_id in seen:
                continue
            seen.add(identity.player_id)
            result.append(identity)
        return result

    def clear_all(self):
        self._by_session.clear()
