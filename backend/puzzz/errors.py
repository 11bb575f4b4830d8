"""Error taxonomy for room synchronization.

Transition-level errors are recovered locally by the session layer; only
RoomNotFound, PlayerNotFound and store connectivity problems reach the user.
"""


class SyncError(Exception):
    """Base class for every error raised by the synchronization core."""


class InvalidTransition(SyncError):
    """The event does not apply to the current phase."""


class InvalidResponse(InvalidTransition):
    """A response was rejected (wrong phase, inactive player, bad payload)."""


class AuthorityConflict(SyncError):
    """A client attempted a transition it has no authority for."""


class StaleWrite(SyncError):
    """The intent was formed against a snapshot that has since moved on."""


class Conflict(SyncError):
    """Compare-and-swap failure at the store. Carries the latest snapshot."""

    def __init__(self, latest=None):
        super().__init__('snapshot version conflict')
        self.latest = latest


class RoomNotFound(SyncError):
    def __init__(self, room_code):
        super().__init__(f'room {room_code} no longer exists')
        self.room_code = room_code


class PlayerNotFound(SyncError):
    def __init__(self, player_id):
        super().__init__(f'player {player_id} is not in this room')
        self.player_id = player_id


class Forbidden(SyncError):
    """A lifecycle operation the requester is not allowed to perform."""


class ValidationError(SyncError):
    """Rejected user input (names, codes, malformed records)."""
