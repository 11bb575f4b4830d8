"""Countdown synchronization without a shared clock.

The host writes ``startedAt`` (its own wall clock, ms) when a timed phase
begins. Every client re-derives the remaining time from that value on each
snapshot instead of trusting its own ticking timer.
"""

from typing import Optional

RESYNC_THRESHOLD_MS = 1000


def elapsed_ms(started_at: int, local_now: int) -> int:
    return max(0, local_now - started_at)


def remaining_ms(duration_ms: int, started_at: int, local_now: int) -> int:
    return max(0, duration_ms - (local_now - started_at))


class Countdown:
    """A locally ticking countdown that snaps back to the host's timeline."""

    def __init__(self):
        self.started_at: Optional[int] = None
        self.duration_ms: Optional[int] = None
        self.remaining: int = 0

    def sync(self, duration_ms: Optional[int], started_at: Optional[int], local_now: int) -> bool:
        """Re-derive from a snapshot. Returns True if the local timer was reset."""
        if duration_ms is None or started_at is None:
            changed = self.started_at is not None
            self.started_at = self.duration_ms = None
            self.remaining = 0
            return changed
        recomputed = remaining_ms(duration_ms, started_at, local_now)
        new_phase = (started_at, duration_ms) != (self.started_at, self.duration_ms)
        if new_phase or abs(self.remaining - recomputed) > RESYNC_THRESHOLD_MS:
            self.started_at = started_at
            self.duration_ms = duration_ms
            self.remaining = recomputed
            return True
        return False

    def tick(self, delta_ms: int) -> int:
        self.remaining = max(0, self.remaining - delta_ms)
        return self.remaining

    @property
    def running(self) -> bool:
        return self.started_at is not None

    @property
    def expired(self) -> bool:
        return self.running and self.remaining == 0


def expiry_intent(machine, record, player_id: str, local_now: int):
    """What this client should do now that the phase timer has run out.

    The host emits the phase-advance ``timeout`` event. Everyone else only
    submits a null response if they still owe one, so the quorum check does
    not stall; they never advance the phase themselves.
    """
    state = record.game_state
    duration = machine.duration_ms(state)
    if duration is None or state.started_at is None:
        return None
    if remaining_ms(duration, state.started_at, local_now) > 0:
        return None
    if record.is_host(player_id):
        if machine.can_transition(state.phase, 'timeout'):
            return machine.make_event(record, 'timeout', player_id)
        return None
    if (state.phase in machine.response_phases
            and player_id in machine.eligible_responders(record)
            and player_id not in state.responses):
        return machine.make_event(record, 'respond', player_id, machine.null_response(state, player_id))
    return None
