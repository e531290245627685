from __future__ import annotations

import random
from typing import Any, Dict, Optional, Tuple

from .config import GameConfig
from .game_engine import RoundStatus
from .modes import ModeRegistry, build_mode_registry
from .session import SoloRound
from .turn_clock import now_ms


class InMemoryRoundStore:
    """Solo rounds keyed by user id, for tests and local dev.

    Rounds live only as long as the process; a finished or abandoned round is
    replaced by the next ``start_round``.
    """

    def __init__(self, modes: Optional[ModeRegistry] = None) -> None:
        self.modes = modes or build_mode_registry()
        self.rounds: Dict[str, SoloRound] = {}

    def get_round(self, user_id: str, now: Optional[float] = None) -> Optional[SoloRound]:
        rnd = self.rounds.get(user_id)
        if rnd is not None:
            rnd.tick(now)
        return rnd

    def _require(self, user_id: str, now: Optional[float]) -> SoloRound:
        rnd = self.get_round(user_id, now)
        if rnd is None:
            raise KeyError("round_not_found")
        return rnd

    def start_round(self, user_id: str, config: GameConfig, rng_seed: Optional[int] = None) -> SoloRound:
        existing = self.get_round(user_id)
        if existing is not None and existing.status == RoundStatus.PLAYING:
            raise ValueError("active_round_exists")
        rng = random.Random(rng_seed) if rng_seed is not None else None
        rnd = SoloRound(config, self.modes, rng=rng)
        self.rounds[user_id] = rnd
        return rnd

    def reveal(self, user_id: str, row: int, col: int, now: Optional[float] = None) -> Tuple[SoloRound, Dict[str, Any]]:
        now = now_ms() if now is None else now
        rnd = self._require(user_id, now)
        result = rnd.open_cell(row, col, now)
        return rnd, result

    def flag(self, user_id: str, row: int, col: int, now: Optional[float] = None) -> Tuple[SoloRound, Dict[str, Any]]:
        rnd = self._require(user_id, now)
        result = rnd.toggle_flag(row, col)
        return rnd, result

    def reset(self, user_id: str) -> SoloRound:
        rnd = self._require(user_id, None)
        rnd.reset()
        return rnd

    def abandon(self, user_id: str, now: Optional[float] = None) -> Dict[str, Any]:
        rnd = self._require(user_id, now)
        snapshot = rnd.snapshot(now)
        del self.rounds[user_id]
        return snapshot | {"abandoned": True}
