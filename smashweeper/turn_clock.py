"""Turn countdown anchored to the authority's clock.

All instants are milliseconds. Authority timestamps are only ever used as
differences, so a skewed local clock does not leak into the countdown.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Optional

from .game_engine import RoundStatus

TURN_DURATION_SECONDS = 15
# 99:99 on the round timer
SESSION_TIME_CAP_SECONDS = 99 * 60 + 99


def now_ms() -> float:
    return time.time() * 1000


@dataclass(frozen=True)
class TurnClock:
    turn_start_local_estimate: float
    turn_duration_seconds: int = TURN_DURATION_SECONDS

    @classmethod
    def anchor(
        cls,
        turn_start_time: float,
        server_timestamp: Optional[float] = None,
        local_now: Optional[float] = None,
        turn_duration_seconds: int = TURN_DURATION_SECONDS,
    ) -> "TurnClock":
        local_now = now_ms() if local_now is None else local_now
        if server_timestamp is not None:
            estimate = local_now - (server_timestamp - turn_start_time)
        elif turn_start_time > local_now:
            estimate = local_now
        else:
            estimate = turn_start_time
        return cls(estimate, turn_duration_seconds)

    @classmethod
    def started_at(cls, local_now: Optional[float] = None, turn_duration_seconds: int = TURN_DURATION_SECONDS) -> "TurnClock":
        return cls(now_ms() if local_now is None else local_now, turn_duration_seconds)

    def elapsed_seconds(self, now: Optional[float] = None) -> int:
        now = now_ms() if now is None else now
        return math.floor((now - self.turn_start_local_estimate) / 1000)

    def remaining(self, now: Optional[float] = None) -> int:
        remaining = self.turn_duration_seconds - self.elapsed_seconds(now)
        return max(0, min(self.turn_duration_seconds, remaining))

    def is_expired(self, now: Optional[float] = None) -> bool:
        return self.elapsed_seconds(now) >= self.turn_duration_seconds


class TurnClockSynchronizer:
    """Holds the current turn anchor and replaces it on every authoritative message.

    Re-anchoring the same turn never moves the estimated start later, so the
    countdown shown between two syncs of one turn only ever goes down.
    """

    def __init__(self, turn_duration_seconds: int = TURN_DURATION_SECONDS) -> None:
        self.turn_duration_seconds = turn_duration_seconds
        self.clock: Optional[TurnClock] = None
        self.turn_start_time: Optional[float] = None

    def sync(
        self,
        turn_start_time: float,
        server_timestamp: Optional[float] = None,
        local_now: Optional[float] = None,
    ) -> TurnClock:
        fresh = TurnClock.anchor(turn_start_time, server_timestamp, local_now, self.turn_duration_seconds)
        if (
            self.clock is not None
            and self.turn_start_time == turn_start_time
            and self.clock.turn_start_local_estimate < fresh.turn_start_local_estimate
        ):
            fresh = TurnClock(self.clock.turn_start_local_estimate, self.turn_duration_seconds)
        self.clock = fresh
        self.turn_start_time = turn_start_time
        return fresh

    def start_now(self, local_now: Optional[float] = None) -> TurnClock:
        self.clock = TurnClock.started_at(local_now, self.turn_duration_seconds)
        self.turn_start_time = None
        return self.clock

    def reset(self) -> None:
        self.clock = None
        self.turn_start_time = None

    @property
    def active(self) -> bool:
        return self.clock is not None

    def remaining(self, now: Optional[float] = None) -> int:
        if self.clock is None:
            return self.turn_duration_seconds
        return self.clock.remaining(now)

    def is_expired(self, now: Optional[float] = None) -> bool:
        return self.clock is not None and self.clock.is_expired(now)


class CountdownDisplay:
    """Seconds shown for the turn; freezes once the round is over."""

    def __init__(self, turn_duration_seconds: int = TURN_DURATION_SECONDS) -> None:
        self.turn_duration_seconds = turn_duration_seconds
        self.value = turn_duration_seconds

    def update(self, status: RoundStatus, clock: Optional[TurnClock], now: Optional[float] = None) -> int:
        status = RoundStatus(status)
        if status.is_terminal:
            return self.value
        if status == RoundStatus.IDLE or clock is None:
            self.value = self.turn_duration_seconds
        elif clock.elapsed_seconds(now) < 0:
            self.value = self.turn_duration_seconds
        else:
            self.value = clock.remaining(now)
        return self.value

    def reset(self) -> None:
        self.value = self.turn_duration_seconds


class ElapsedTimer:
    """Whole seconds played in the round, optionally re-anchored to the authority's count."""

    def __init__(self) -> None:
        self.base_seconds = 0
        self.anchored_at: Optional[float] = None

    def start(self, now: Optional[float] = None, base_seconds: int = 0) -> None:
        self.base_seconds = base_seconds
        self.anchored_at = now_ms() if now is None else now

    def stop(self, now: Optional[float] = None) -> None:
        self.base_seconds = self.seconds(now)
        self.anchored_at = None

    def reset(self) -> None:
        self.base_seconds = 0
        self.anchored_at = None

    @property
    def running(self) -> bool:
        return self.anchored_at is not None

    def seconds(self, now: Optional[float] = None) -> int:
        if self.anchored_at is None:
            return self.base_seconds
        now = now_ms() if now is None else now
        return self.base_seconds + max(0, math.floor((now - self.anchored_at) / 1000))

    def over_cap(self, now: Optional[float] = None, cap: int = SESSION_TIME_CAP_SECONDS) -> bool:
        return self.seconds(now) >= cap
