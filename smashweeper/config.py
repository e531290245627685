from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .modes import CLASSIC_MODE_ID
from .patterns import DEFAULT_PATTERN_ID

MIN_ROWS = 5
MAX_ROWS = 16
MIN_COLS = 5
MAX_COLS = 16
MAX_MINE_DENSITY = 0.85
# first click plus its 8 neighbours
SAFE_ZONE_CELLS = 9


def max_mines(rows: int, cols: int) -> int:
    cells = rows * cols
    return max(1, min(math.floor(cells * MAX_MINE_DENSITY), cells - SAFE_ZONE_CELLS))


class GameConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    rows: int = Field(..., ge=MIN_ROWS, le=MAX_ROWS)
    cols: int = Field(..., ge=MIN_COLS, le=MAX_COLS)
    mine_count: int = Field(..., ge=1, alias="mines")
    game_mode_id: str = Field(CLASSIC_MODE_ID, alias="gameMode")
    pattern_id: str = Field(DEFAULT_PATTERN_ID, alias="pattern")

    @model_validator(mode="after")
    def _check_mines(self) -> "GameConfig":
        if self.mine_count > max_mines(self.rows, self.cols):
            raise ValueError("too_many_mines_for_board")
        return self


def clamp_config(
    rows: int,
    cols: int,
    mine_count: int,
    game_mode_id: str = CLASSIC_MODE_ID,
    pattern_id: str = DEFAULT_PATTERN_ID,
) -> GameConfig:
    rows = max(MIN_ROWS, min(MAX_ROWS, rows))
    cols = max(MIN_COLS, min(MAX_COLS, cols))
    mine_count = max(1, min(max_mines(rows, cols), mine_count))
    return GameConfig(
        rows=rows,
        cols=cols,
        mine_count=mine_count,
        game_mode_id=game_mode_id,
        pattern_id=pattern_id,
    )


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    resync_max_attempts: int = 5
    resync_delay_ms: int = 200
    start_sync_delay_ms: int = 100
    default_mode_id: str = CLASSIC_MODE_ID
    default_pattern_id: str = DEFAULT_PATTERN_ID
    allow_anon: bool = True
    default_user_id: str = "local-user"

    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = Path(".env.local")) -> "Settings":
        if dotenv_path is not None:
            load_dotenv(dotenv_path=dotenv_path)
        return cls(
            resync_max_attempts=_env_int("SMASHWEEPER_RESYNC_MAX_ATTEMPTS", 5),
            resync_delay_ms=_env_int("SMASHWEEPER_RESYNC_DELAY_MS", 200),
            start_sync_delay_ms=_env_int("SMASHWEEPER_START_SYNC_DELAY_MS", 100),
            default_mode_id=os.getenv("SMASHWEEPER_DEFAULT_MODE", CLASSIC_MODE_ID),
            default_pattern_id=os.getenv("SMASHWEEPER_DEFAULT_PATTERN", DEFAULT_PATTERN_ID),
            allow_anon=_env_flag("ALLOW_ANON", "1"),
            default_user_id=os.getenv("DEFAULT_USER_ID", "local-user"),
        )
