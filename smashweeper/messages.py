"""Payloads exchanged with the multiplayer transport.

Inbound payloads arrive already deserialized (camelCase keys, as sent by the
room server); outbound intents are fire-and-forget.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .board import Board, Cell
from .game_engine import RoundStatus


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Player(_Payload):
    id: str
    name: str = ""
    flag_color: Optional[str] = Field(None, alias="flagColor")


class RoomConfig(_Payload):
    rows: Optional[int] = None
    cols: Optional[int] = None
    mines: Optional[int] = None
    game_mode: Optional[str] = Field(None, alias="gameMode")
    pattern: Optional[str] = None


class GameStartedPayload(_Payload):
    players: List[Player] = Field(default_factory=list)
    current_turn: Optional[str] = Field(None, alias="currentTurn")
    config: Optional[RoomConfig] = None
    turn_start_time: Optional[float] = Field(None, alias="turnStartTime")
    timestamp: Optional[float] = None


class TurnChangedPayload(_Payload):
    current_turn: str = Field(..., alias="currentTurn")
    turn_start_time: Optional[float] = Field(None, alias="turnStartTime")
    timestamp: Optional[float] = None


class CellPayload(_Payload):
    row: int
    col: int
    is_mine: bool = Field(False, alias="isMine")
    is_revealed: bool = Field(False, alias="isRevealed")
    is_flagged: bool = Field(False, alias="isFlagged")
    neighbor_mines: int = Field(0, ge=0, le=8, alias="neighborMines")
    flagged_by: Optional[str] = Field(None, alias="flaggedBy")

    def to_cell(self) -> Cell:
        return Cell(
            row=self.row,
            col=self.col,
            is_mine=self.is_mine,
            is_revealed=self.is_revealed,
            is_flagged=self.is_flagged,
            neighbor_mines=self.neighbor_mines,
            flagged_by=self.flagged_by if self.is_flagged else None,
        )


class BoardSyncPayload(_Payload):
    cells: List[List[CellPayload]] = Field(default_factory=list)
    status: RoundStatus = RoundStatus.IDLE
    time: int = 0
    flagged_count: Optional[int] = Field(None, alias="flaggedCount")
    current_turn: Optional[str] = Field(None, alias="currentTurn")
    players: List[Player] = Field(default_factory=list)
    turn_start_time: Optional[float] = Field(None, alias="turnStartTime")
    game_mode: Optional[str] = Field(None, alias="gameMode")
    timestamp: Optional[float] = None

    def has_grid(self) -> bool:
        if not self.cells or not self.cells[0]:
            return False
        width = len(self.cells[0])
        if any(len(row) != width for row in self.cells):
            return False
        return all(
            cell.row == r and cell.col == c
            for r, row in enumerate(self.cells)
            for c, cell in enumerate(row)
        )

    def to_board(self) -> Board:
        return Board.from_rows([[cell.to_cell() for cell in row] for row in self.cells])


class CellUpdate(_Payload):
    row: int
    col: int
    is_revealed: bool = Field(..., alias="isRevealed")
    neighbor_mines: Optional[int] = Field(None, ge=0, le=8, alias="neighborMines")
    is_mine: Optional[bool] = Field(None, alias="isMine")


class CellUpdatesPayload(_Payload):
    updates: List[CellUpdate] = Field(default_factory=list)
    player_id: Optional[str] = Field(None, alias="playerId")


class FlagUpdatePayload(_Payload):
    row: int
    col: int
    is_flagged: bool = Field(..., alias="isFlagged")
    player_id: Optional[str] = Field(None, alias="playerId")


class GameStatePayload(_Payload):
    status: RoundStatus
    time: Optional[int] = None
    flagged_count: Optional[int] = Field(None, alias="flaggedCount")
    player_id: Optional[str] = Field(None, alias="playerId")
    player_name: Optional[str] = Field(None, alias="playerName")


class Intent(str, Enum):
    REVEAL_CELL = "cell_click"
    TOGGLE_FLAG = "toggle_flag"
    TURN_TIMEOUT = "turn_timeout"
    GAME_TIMEOUT = "timeout_game"
    REQUEST_SYNC = "request_sync"
    REQUEST_REMATCH = "request_rematch"


@dataclass(frozen=True)
class OutboundIntent:
    kind: Intent
    payload: Dict[str, Any] = field(default_factory=dict)
