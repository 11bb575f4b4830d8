"""Merge incoming room snapshots with this client's in-flight state."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from puzzz.records import RoomRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingResponse:
    phase: str
    round: int
    payload: Any


class Reconciler:
    """Holds the snapshot a client renders from.

    Snapshots can arrive out of order (a slow broadcast overtaken by a newer
    one) or from two writers that raced to the same version. The latest
    version wins; on equal versions the host-written snapshot is canonical.
    """

    def __init__(self, player_id: Optional[str] = None):
        self.player_id = player_id
        self.current: Optional[RoomRecord] = None
        self.pending: Optional[PendingResponse] = None

    def accept(self, incoming: RoomRecord) -> bool:
        """Adopt ``incoming`` if it supersedes the current snapshot."""
        current = self.current
        if current is not None and incoming.room_code != current.room_code:
            logger.warning('ignoring snapshot for %s while in %s', incoming.room_code, current.room_code)
            return False
        if current is not None:
            if incoming.version < current.version:
                logger.debug('%s: dropped out-of-order snapshot v%d < v%d',
                             incoming.room_code, incoming.version, current.version)
                return False
            if incoming.version == current.version:
                if incoming == current:
                    return False
                if not self._host_wins(incoming, current):
                    return False
        self.current = incoming
        self._settle_pending()
        return True

    def _host_wins(self, incoming: RoomRecord, current: RoomRecord) -> bool:
        incoming_host = incoming.is_host(incoming.updated_by)
        current_host = current.is_host(current.updated_by)
        if incoming_host != current_host:
            return incoming_host
        # neither or both written by the host: keep the most recent write
        return incoming.updated_at > current.updated_at

    def remember_response(self, payload: Any) -> None:
        state = self.current.game_state
        self.pending = PendingResponse(state.phase, state.round, payload)

    def _settle_pending(self) -> None:
        pending = self.pending
        if pending is None or self.current is None:
            return
        state = self.current.game_state
        if (state.phase, state.round) != (pending.phase, pending.round):
            logger.debug('%s: phase moved on, discarding unsent response', self.current.room_code)
            self.pending = None
        elif self.player_id in state.responses:
            self.pending = None

    def my_response(self) -> Any:
        """This player's response as the UI should show it, echoed or not."""
        if self.current is None:
            return None
        responses = self.current.game_state.responses
        if self.player_id in responses:
            return responses[self.player_id]
        return self.pending.payload if self.pending else None

    @property
    def awaiting_echo(self) -> bool:
        return self.pending is not None
