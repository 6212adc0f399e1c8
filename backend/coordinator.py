from typing import Callable, Dict, List, Optional, Protocol
import logging

from buzzer import BuzzerRace
from messages import (
    COMMAND_TYPES, ActivateBuzzerCommand, BuzzCommand, BuzzReceived, BuzzerActive,
    BuzzerReset, Command, Event, GameReset, GetPlayersCommand, JoinCommand,
    JoinSuccess, PlayerInfo, PlayerLeft, PlayerRejoined, PlayersUpdate,
    RejoinSuccess, ResetBuzzerCommand, ResetGameCommand, UpdateScoreCommand,
)
from registry import IdentityRegistry, PlayerIdentity

logger = logging.getLogger(__name__)


class Outbox(Protocol):
    """Where the coordinator delivers events. Sends must not block."""

    def send(self, session_id: str, event: Event) -> None: ...

    def broadcast(self, event: Event) -> None: ...


def player_info(identity: PlayerIdentity) -> PlayerInfo:
    return PlayerInfo(name=identity.name, score=identity.score, player_id=identity.player_id)


class Coordinator:
    """Sole writer of the identity registry and the buzzer race.

    Every inbound command runs to completion, including queuing its
    outbound events, before the next one is looked at. ``dispatch`` is
    synchronous and is only ever called from the server's event loop.
    """

    def __init__(self, outbox: Outbox, registry: Optional[IdentityRegistry] = None,
                 race: Optional[BuzzerRace] = None):
        self.outbox = outbox
        self.registry = registry if registry is not None else IdentityRegistry()
        self.race = race if race is not None else BuzzerRace()
        self._handlers: Dict[type, Callable[[str, Command], None]] = {
            JoinCommand: self._on_join,
            BuzzCommand: self._on_buzz,
            ActivateBuzzerCommand: self._on_activate_buzzer,
            ResetBuzzerCommand: self._on_reset_buzzer,
            UpdateScoreCommand: self._on_update_score,
            GetPlayersCommand: self._on_get_players,
            ResetGameCommand: self._on_reset_game,
        }
        missing = [t.__name__ for t in COMMAND_TYPES if t not in self._handlers]
        if missing:
            raise RuntimeError(f"No handler for commands: {', '.join(missing)}")

    def dispatch(self, session_id: str, command: Command) -> None:
        """Apply one command. A failing handler is logged, never raised."""
        handler = self._handlers[type(command)]
        try:
            handler(session_id, command)
        except Exception:
            logger.exception("Error handling %s from session %s", command.type, session_id)

    def disconnect(self, session_id: str) -> None:
        """The transport closed ``session_id``; the identity is retained."""
        try:
            identity = self.registry.find_by_session_id(session_id)
            if identity is None:
                logger.debug("Session %s disconnected (no player bound)", session_id)
                return
            logger.info("Player disconnected: %s (score %d)", identity.name, identity.score)
            self.outbox.broadcast(PlayerLeft(name=identity.name, score=identity.score))
        except Exception:
            logger.exception("Error handling disconnect of session %s", session_id)

    def players(self) -> List[PlayerInfo]:
        return [player_info(p) for p in self.registry.list_deduplicated()]

    # --- command handlers ---

    def _on_join(self, session_id: str, cmd: JoinCommand):
        player_id = cmd.player_id or session_id
        identity, rebound = self.registry.upsert_on_join(player_id, cmd.name, session_id)
        if rebound:
            self.outbox.send(session_id, RejoinSuccess(player=player_info(identity)))
            self.outbox.broadcast(PlayerRejoined(name=identity.name, score=identity.score))
            logger.info("Player reconnected: %s (score %d)", identity.name, identity.score)
        else:
            self.outbox.send(session_id, JoinSuccess(player=player_info(identity)))
            logger.info("New player joined: %s (%s)", identity.name, identity.player_id)
        self.outbox.broadcast(PlayersUpdate(players=self.players()))

    def _on_buzz(self, session_id: str, cmd: BuzzCommand):
        identity = self.registry.find_by_session_id(session_id)
        if identity is None:
            logger.debug("Buzz from unbound session %s ignored", session_id)
            return
        entry = self.race.record_buzz(identity.player_id, identity.name)
        if entry is None:
            logger.debug("Duplicate buzz from %s ignored", identity.name)
            return
        self.outbox.broadcast(BuzzReceived(
            player_id=entry.player_id, name=entry.name, timestamp=entry.timestamp,
        ))
        logger.info("Buzz from: %s (position %d)", entry.name, len(self.race.entries))

    def _on_activate_buzzer(self, session_id: str, cmd: ActivateBuzzerCommand):
        self.race.activate(cmd.question)
        self.outbox.broadcast(BuzzerActive(question=cmd.question))
        logger.info("Buzzer activated for question: %s", cmd.question)

    def _on_reset_buzzer(self, session_id: str, cmd: ResetBuzzerCommand):
        self.race.reset()
        self.outbox.broadcast(BuzzerReset())
        logger.info("Buzzer reset")

    def _on_update_score(self, session_id: str, cmd: UpdateScoreCommand):
        identity = self.registry.adjust_score(cmd.player_id, cmd.points)
        if identity is None:
            logger.debug("Score update for unknown player %s ignored", cmd.player_id)
            return
        self.outbox.broadcast(PlayersUpdate(players=self.players()))
        logger.info("Updated %s's score by %d. New score: %d",
                    identity.name, cmd.points, identity.score)

    def _on_get_players(self, session_id: str, cmd: GetPlayersCommand):
        self.outbox.send(session_id, PlayersUpdate(players=self.players()))

    def _on_reset_game(self, session_id: str, cmd: ResetGameCommand):
        self.registry.clear_all()
        self.race.reset()
        self.outbox.broadcast(GameReset())
        self.outbox.broadcast(PlayersUpdate(players=[]))
        logger.info("Game reset")
