from __future__ import annotations

import logging
import random
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .board import Board
from .config import GameConfig, Settings
from .game_engine import (
    RoundStatus,
    apply_flag,
    apply_reveal,
    reveal_all_mines,
    set_flag,
    to_client_view,
)
from .messages import (
    BoardSyncPayload,
    CellUpdatesPayload,
    FlagUpdatePayload,
    GameStartedPayload,
    GameStatePayload,
    Intent,
    OutboundIntent,
    Player,
    TurnChangedPayload,
)
from .modes import GameMode, ModeRegistry
from .patterns import PlacementRequest
from .turn_clock import CountdownDisplay, ElapsedTimer, TurnClockSynchronizer, now_ms

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)
Emit = Callable[[OutboundIntent], None]


def _parse(model: Type[P], payload: Union[P, Dict[str, Any]]) -> P:
    if isinstance(payload, model):
        return payload
    return model.model_validate(payload)


def _noop(board: Board, status: RoundStatus) -> Dict[str, Any]:
    return {
        "hit_mine": False,
        "cleared_cells": 0,
        "status_after": status,
        "revealed_total": board.revealed_count,
        "flags_total": board.flagged_count,
    }


class SoloRound:
    """Single-player round: mines are placed on the first reveal and timeouts are decided locally."""

    def __init__(self, config: GameConfig, modes: ModeRegistry, rng: Optional[random.Random] = None) -> None:
        self.config = config
        self.modes = modes
        self.rng = rng
        self.reset()

    def reset(self) -> None:
        self.mode: GameMode = self.modes.resolve(self.config.game_mode_id, self.config.pattern_id)
        self.board = self.mode.create_empty_board(self.config.rows, self.config.cols)
        self.status = RoundStatus.IDLE
        self.first_click = True
        self.turn = TurnClockSynchronizer(self.mode.turn_seconds)
        self.display = CountdownDisplay(self.mode.turn_seconds)
        self.timer = ElapsedTimer()

    def open_cell(self, row: int, col: int, now: Optional[float] = None) -> Dict[str, Any]:
        now = now_ms() if now is None else now
        if not self.board.in_bounds(row, col):
            raise ValueError("out_of_bounds")
        if self.status.is_terminal:
            return _noop(self.board, self.status)
        cell = self.board.cell(row, col)
        if cell.is_flagged or cell.is_revealed:
            return _noop(self.board, self.status)

        board = self.board
        ext = self.mode.extension
        if self.first_click:
            request = PlacementRequest(self.config.mine_count, row, col, self.config.rows, self.config.cols)
            board = self.mode.place_mines(board, request, self.rng)
            self.first_click = False
            self.status = RoundStatus.PLAYING
            self.timer.start(now)
            if ext is not None:
                ext.on_game_start(self.config.model_dump())
        if self.mode.is_timed:
            self.turn.start_now(now)

        board, result = apply_reveal(board, row, col, ext)
        self.board = board
        if ext is not None:
            ext.on_cell_revealed(row, col, board.cell(row, col))
        if result["status_after"].is_terminal:
            self._finish(result["status_after"], now)
        result["status_after"] = self.status
        return result

    def toggle_flag(self, row: int, col: int) -> Dict[str, Any]:
        if not self.board.in_bounds(row, col):
            raise ValueError("out_of_bounds")
        if self.status.is_terminal:
            return _noop(self.board, self.status)
        board, result = apply_flag(self.board, row, col)
        if board is not self.board and self.mode.extension is not None:
            self.mode.extension.on_flag_placed(row, col, board.cell(row, col))
        self.board = board
        result["status_after"] = self.status
        return result

    def tick(self, now: Optional[float] = None) -> RoundStatus:
        now = now_ms() if now is None else now
        if self.status != RoundStatus.PLAYING:
            return self.status
        if self.timer.over_cap(now):
            logger.info("solo round timed out reason=session_cap elapsed=%d", self.timer.seconds(now))
            self._timeout(now)
        elif self.mode.is_timed and self.turn.is_expired(now):
            logger.info("solo round timed out reason=turn")
            self._timeout(now)
        return self.status

    def remaining_seconds(self, now: Optional[float] = None) -> int:
        return self.display.update(self.status, self.turn.clock, now)

    def _timeout(self, now: float) -> None:
        self.board = reveal_all_mines(self.board)
        self._finish(RoundStatus.TIMEOUT, now)

    def _finish(self, status: RoundStatus, now: float) -> None:
        if self.mode.is_timed:
            self.display.update(RoundStatus.PLAYING, self.turn.clock, now)
        self.status = status
        self.timer.stop(now)
        if self.mode.extension is not None:
            self.mode.extension.on_game_end()

    def snapshot(self, now: Optional[float] = None) -> Dict[str, Any]:
        now = now_ms() if now is None else now
        view = {
            "status": self.status.value,
            "board": to_client_view(self.board, self.status),
            "rows": self.board.rows,
            "cols": self.board.cols,
            "mine_count": self.config.mine_count,
            "flags_total": self.board.flagged_count,
            "revealed_total": self.board.revealed_count,
            "elapsed_seconds": self.timer.seconds(now),
            "game_mode": self.mode.mode_id,
            "pattern": self.mode.pattern.pattern_id,
        }
        if self.mode.is_timed:
            view["turn_remaining"] = self.remaining_seconds(now)
        return view


class MultiplayerRound:
    """One participant's local copy of a shared round.

    State is replaced by the authority's payloads; local decisions (turn and
    session timeouts) are only sent as intents and never applied locally.
    """

    def __init__(
        self,
        player_id: str,
        config: GameConfig,
        modes: ModeRegistry,
        emit: Emit,
        settings: Optional[Settings] = None,
        room_code: Optional[str] = None,
    ) -> None:
        self.player_id = player_id
        self.config = config
        self.modes = modes
        self.emit = emit
        self.settings = settings or Settings()
        self.room_code = room_code
        self.mode: GameMode = modes.resolve(config.game_mode_id, config.pattern_id)
        self.board: Optional[Board] = None
        self.status = RoundStatus.IDLE
        self.current_turn: Optional[str] = None
        self.players: List[Player] = []
        self.end_player: Optional[Dict[str, Any]] = None
        self.turn = TurnClockSynchronizer(self.mode.turn_seconds)
        self.display = CountdownDisplay(self.mode.turn_seconds)
        self.timer = ElapsedTimer()
        self.resync_attempts = 0
        self.resync_due_at: Optional[float] = None
        self.resync_exhausted = False
        self._turn_timeout_sent = False
        self._game_timeout_sent = False
        self._handlers: Dict[str, Callable[[Any, float], None]] = {
            "game_started": self.on_game_started,
            "turn_changed": self.on_turn_changed,
            "board_sync": self.on_board_sync,
            "cell_updates": self.on_cell_updates,
            "flag_update": self.on_flag_update,
            "game_state_update": self.on_game_state_update,
            "timeout_game": self.on_timeout_game,
        }

    @property
    def is_my_turn(self) -> bool:
        return self.current_turn is not None and self.current_turn == self.player_id

    def handle(self, event: str, payload: Any = None, now: Optional[float] = None) -> bool:
        now = now_ms() if now is None else now
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug("ignoring event=%s", event)
            return False
        try:
            handler(payload if payload is not None else {}, now)
        except ValidationError as e:
            if event == "board_sync":
                self._board_sync_failed(now, "malformed")
            else:
                logger.warning("dropping malformed event=%s errors=%d", event, e.error_count())
            return False
        return True

    # inbound

    def on_game_started(self, payload: Any, now: Optional[float] = None) -> None:
        now = now_ms() if now is None else now
        p = _parse(GameStartedPayload, payload)
        self.board = None
        self.status = RoundStatus.PLAYING
        self.end_player = None
        self.timer.start(now)
        self.display.reset()
        self._game_timeout_sent = False
        if p.players:
            self.players = p.players
        if p.current_turn:
            self.current_turn = p.current_turn
        mode_id = self.mode.mode_id
        pattern_id = self.mode.pattern.pattern_id
        if p.config is not None:
            mode_id = p.config.game_mode or mode_id
            pattern_id = p.config.pattern or pattern_id
        # every round, rematches included, gets a fresh extension
        self._load_mode(mode_id, pattern_id)
        if self.mode.extension is not None:
            self.mode.extension.on_game_start(self._round_config(p))
        self.turn.reset()
        self._turn_timeout_sent = False
        if self.mode.is_timed:
            if p.turn_start_time is not None:
                self._sync_turn(p.turn_start_time, p.timestamp, now)
            else:
                self.turn.start_now(now)
        self.resync_attempts = 0
        self.resync_exhausted = False
        self._schedule_resync(now, self.settings.start_sync_delay_ms)

    def on_turn_changed(self, payload: Any, now: Optional[float] = None) -> None:
        now = now_ms() if now is None else now
        p = _parse(TurnChangedPayload, payload)
        self.current_turn = p.current_turn
        self._turn_timeout_sent = False
        if self.mode.is_timed and p.turn_start_time is not None:
            self.display.reset()
            self._sync_turn(p.turn_start_time, p.timestamp, now)

    def on_board_sync(self, payload: Any, now: Optional[float] = None) -> None:
        now = now_ms() if now is None else now
        p = _parse(BoardSyncPayload, payload)
        if not p.has_grid():
            self._board_sync_failed(now, "empty")
            return
        self.board = p.to_board()
        if p.game_mode and p.game_mode != self.mode.mode_id:
            self._switch_mode(p.game_mode, self.mode.pattern.pattern_id)
        self._apply_status(p.status, now, p.time)
        if self.status == RoundStatus.IDLE:
            self.timer.stop(now)
        if p.current_turn:
            self.current_turn = p.current_turn
        if p.turn_start_time is not None:
            self._sync_turn(p.turn_start_time, p.timestamp, now)
        elif self.mode.is_timed and p.current_turn and not self.turn.active:
            self.turn.start_now(now)
        if p.players:
            self.players = p.players
        self.resync_attempts = 0
        self.resync_exhausted = False
        self.resync_due_at = None

    def on_cell_updates(self, payload: Any, now: Optional[float] = None) -> None:
        p = _parse(CellUpdatesPayload, payload)
        if self.board is None:
            return
        board = self.board
        changed = {}
        for u in p.updates:
            if not board.in_bounds(u.row, u.col):
                logger.debug("cell update out of bounds row=%d col=%d", u.row, u.col)
                continue
            cell = changed.get((u.row, u.col), board.cell(u.row, u.col))
            fields: Dict[str, Any] = {"is_revealed": u.is_revealed}
            if u.neighbor_mines is not None:
                fields["neighbor_mines"] = u.neighbor_mines
            if u.is_mine is not None:
                fields["is_mine"] = u.is_mine
            changed[(u.row, u.col)] = replace(cell, **fields)
        self.board = board.with_cells(changed)
        ext = self.mode.extension
        if ext is not None:
            for (r, c), cell in changed.items():
                if cell.is_revealed and not board.cell(r, c).is_revealed:
                    ext.on_cell_revealed(r, c, cell)

    def on_flag_update(self, payload: Any, now: Optional[float] = None) -> None:
        p = _parse(FlagUpdatePayload, payload)
        if self.board is None or not self.board.in_bounds(p.row, p.col):
            return
        board = set_flag(self.board, p.row, p.col, p.is_flagged, p.player_id)
        if board is not self.board and p.is_flagged and self.mode.extension is not None:
            self.mode.extension.on_flag_placed(p.row, p.col, board.cell(p.row, p.col))
        self.board = board

    def on_game_state_update(self, payload: Any, now: Optional[float] = None) -> None:
        now = now_ms() if now is None else now
        p = _parse(GameStatePayload, payload)
        self._apply_status(p.status, now, p.time)
        if p.status.is_terminal and p.player_name:
            self.end_player = {"name": p.player_name, "is_winner": p.status == RoundStatus.WON}

    def on_timeout_game(self, payload: Any = None, now: Optional[float] = None) -> None:
        now = now_ms() if now is None else now
        self._apply_status(RoundStatus.TIMEOUT, now)

    # outbound

    def reveal(self, row: int, col: int) -> bool:
        if self.status.is_terminal:
            return False
        if self.board is not None and self.board.in_bounds(row, col):
            cell = self.board.cell(row, col)
            if cell.is_flagged or cell.is_revealed:
                return False
        if not self.is_my_turn:
            logger.debug("reveal refused, not your turn player=%s turn=%s", self.player_id, self.current_turn)
            return False
        self._send(Intent.REVEAL_CELL, {"row": row, "col": col})
        return True

    def toggle_flag(self, row: int, col: int) -> bool:
        if self.status.is_terminal:
            return False
        if not self.is_my_turn:
            logger.debug("flag refused, not your turn player=%s turn=%s", self.player_id, self.current_turn)
            return False
        self._send(Intent.TOGGLE_FLAG, {"row": row, "col": col})
        return True

    def request_rematch(self) -> None:
        self._send(Intent.REQUEST_REMATCH)

    def request_sync(self) -> None:
        self._send(Intent.REQUEST_SYNC)

    def tick(self, now: Optional[float] = None) -> None:
        now = now_ms() if now is None else now
        if self.resync_due_at is not None and now >= self.resync_due_at:
            self.resync_due_at = None
            self.request_sync()
        if self.status != RoundStatus.PLAYING:
            return
        if not self._game_timeout_sent and self.timer.over_cap(now):
            self._game_timeout_sent = True
            logger.info("session cap reached, sending game timeout elapsed=%d", self.timer.seconds(now))
            self._send(Intent.GAME_TIMEOUT, self._room())
        if (
            self.mode.is_timed
            and self.is_my_turn
            and not self._turn_timeout_sent
            and self.turn.is_expired(now)
        ):
            self._turn_timeout_sent = True
            logger.info("turn expired, sending turn timeout player=%s", self.player_id)
            self._send(Intent.TURN_TIMEOUT, self._room())

    def remaining_seconds(self, now: Optional[float] = None) -> int:
        return self.display.update(self.status, self.turn.clock, now)

    # internals

    def _send(self, kind: Intent, payload: Optional[Dict[str, Any]] = None) -> None:
        self.emit(OutboundIntent(kind, payload or {}))

    def _room(self) -> Dict[str, Any]:
        return {"roomCode": self.room_code} if self.room_code else {}

    def _switch_mode(self, mode_id: str, pattern_id: Optional[str]) -> None:
        if mode_id == self.mode.mode_id and (pattern_id is None or pattern_id == self.mode.pattern.pattern_id):
            return
        self._load_mode(mode_id, pattern_id)

    def _load_mode(self, mode_id: str, pattern_id: Optional[str]) -> None:
        self.mode = self.modes.resolve(mode_id, pattern_id)
        self.turn = TurnClockSynchronizer(self.mode.turn_seconds)
        self.display = CountdownDisplay(self.mode.turn_seconds)

    def _round_config(self, p: GameStartedPayload) -> Dict[str, Any]:
        config = self.config.model_dump()
        if p.config is not None:
            for key, value in (("rows", p.config.rows), ("cols", p.config.cols), ("mine_count", p.config.mines)):
                if value is not None:
                    config[key] = value
        config["game_mode_id"] = self.mode.mode_id
        config["pattern_id"] = self.mode.pattern.pattern_id
        return config

    def _sync_turn(self, turn_start_time: float, server_timestamp: Optional[float], now: float) -> None:
        if self.turn.turn_start_time != turn_start_time:
            self._turn_timeout_sent = False
        self.turn.sync(turn_start_time, server_timestamp, now)

    def _apply_status(self, status: RoundStatus, now: float, elapsed: Optional[int] = None) -> None:
        was_terminal = self.status.is_terminal
        if status.is_terminal and not was_terminal:
            self.display.update(self.status, self.turn.clock, now)
        self.status = status
        if elapsed is not None:
            self.timer.start(now, base_seconds=elapsed)
        if status.is_terminal:
            self.timer.stop(now)
            if not was_terminal and self.mode.extension is not None:
                self.mode.extension.on_game_end()
        elif status == RoundStatus.PLAYING and not self.timer.running:
            self.timer.start(now, base_seconds=self.timer.seconds(now))

    def _schedule_resync(self, now: float, delay_ms: int) -> None:
        self.resync_due_at = now + delay_ms

    def _board_sync_failed(self, now: float, reason: str) -> None:
        self.resync_attempts += 1
        if self.resync_attempts > self.settings.resync_max_attempts:
            self.resync_exhausted = True
            self.resync_due_at = None
            logger.error(
                "board sync rejected reason=%s, giving up after attempts=%d",
                reason, self.resync_attempts - 1,
            )
            return
        logger.warning(
            "board sync rejected reason=%s, re-requesting attempt=%d/%d",
            reason, self.resync_attempts, self.settings.resync_max_attempts,
        )
        self._schedule_resync(now, self.settings.resync_delay_ms)
