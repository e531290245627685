from __future__ import annotations

from collections import deque
from dataclasses import replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set, Tuple

from .board import Board, Cell, Coord, neighbors

if TYPE_CHECKING:
    from .modes import GameModeExtension


class RoundStatus(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    WON = "won"
    LOST = "lost"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self in (RoundStatus.WON, RoundStatus.LOST, RoundStatus.TIMEOUT)


def _check_bounds(board: Board, row: int, col: int) -> None:
    if not board.in_bounds(row, col):
        raise ValueError("out_of_bounds")


def _result(board: Board, status: RoundStatus, hit_mine: bool = False, cleared: int = 0) -> Dict[str, Any]:
    return {
        "hit_mine": hit_mine,
        "cleared_cells": cleared,
        "status_after": status,
        "revealed_total": board.revealed_count,
        "flags_total": board.flagged_count,
    }


def reveal_cell(board: Board, row: int, col: int) -> Board:
    """Flood-fill revelation from (row, col).

    Expansion only continues through non-mine cells with a zero count; flagged
    cells are never revealed and block the fill.
    """
    _check_bounds(board, row, col)
    start = board.cell(row, col)
    if start.is_revealed or start.is_flagged:
        return board
    grid = board.to_rows()
    visited: Set[Coord] = set()
    q = deque([(row, col)])
    while q:
        r, c = q.popleft()
        if (r, c) in visited:
            continue
        visited.add((r, c))
        cell = grid[r][c]
        if cell.is_revealed or cell.is_flagged:
            continue
        grid[r][c] = replace(cell, is_revealed=True)
        if cell.is_mine or cell.neighbor_mines != 0:
            continue
        for nr, nc in neighbors(r, c, board.rows, board.cols):
            n = grid[nr][nc]
            if (nr, nc) not in visited and not n.is_revealed and not n.is_flagged:
                q.append((nr, nc))
    return Board.from_rows(grid)


def is_win(board: Board) -> bool:
    return all(c.is_revealed for c in board if not c.is_mine)


def reveal_all_mines(board: Board) -> Board:
    return board.map_cells(lambda c: replace(c, is_revealed=True) if c.is_mine and not c.is_revealed else c)


def finalize_win(board: Board) -> Board:
    def _final(c: Cell) -> Cell:
        if c.is_mine:
            return c if c.is_flagged else replace(c, is_flagged=True)
        return c if c.is_revealed else replace(c, is_revealed=True)

    return board.map_cells(_final)


def apply_reveal(
    board: Board,
    row: int,
    col: int,
    extension: Optional["GameModeExtension"] = None,
) -> Tuple[Board, Dict[str, Any]]:
    _check_bounds(board, row, col)
    target = board.cell(row, col)
    if target.is_revealed or target.is_flagged:
        return board, _result(board, RoundStatus.PLAYING)

    before = board.revealed_count
    nb = reveal_cell(board, row, col)
    cleared = nb.revealed_count - before
    hit = target.is_mine

    lost: Optional[bool] = None
    if extension is not None:
        lost = extension.check_lose_condition(nb, hit)
    if lost is None:
        lost = hit
    if lost:
        nb = reveal_all_mines(nb)
        return nb, _result(nb, RoundStatus.LOST, hit_mine=hit, cleared=cleared)

    won: Optional[bool] = None
    if extension is not None:
        won = extension.check_win_condition(nb, nb.revealed_count, nb.total_cells)
    if won is None:
        won = is_win(nb)
    if won:
        nb = finalize_win(nb)
        return nb, _result(nb, RoundStatus.WON, hit_mine=hit, cleared=cleared)
    return nb, _result(nb, RoundStatus.PLAYING, hit_mine=hit, cleared=cleared)


def set_flag(board: Board, row: int, col: int, is_flagged: bool, actor_id: Optional[str] = None) -> Board:
    _check_bounds(board, row, col)
    cell = board.cell(row, col)
    if cell.is_revealed and is_flagged:
        return board
    updated = replace(cell, is_flagged=is_flagged, flagged_by=actor_id if is_flagged else None)
    if updated == cell:
        return board
    return board.with_cells({(row, col): updated})


def toggle_flag(board: Board, row: int, col: int, actor_id: Optional[str] = None) -> Board:
    _check_bounds(board, row, col)
    cell = board.cell(row, col)
    if cell.is_revealed:
        return board
    return set_flag(board, row, col, not cell.is_flagged, actor_id)


def apply_flag(
    board: Board,
    row: int,
    col: int,
    actor_id: Optional[str] = None,
) -> Tuple[Board, Dict[str, Any]]:
    nb = toggle_flag(board, row, col, actor_id)
    return nb, _result(nb, RoundStatus.PLAYING)


def to_client_view(board: Board, status: RoundStatus) -> List[List[str]]:
    over = RoundStatus(status).is_terminal
    view: List[List[str]] = []
    for row in board.cells:
        out: List[str] = []
        for cell in row:
            if cell.is_mine and (over or cell.is_revealed):
                out.append("M")
            elif cell.is_revealed:
                out.append(str(cell.neighbor_mines))
            else:
                out.append("F" if cell.is_flagged else "H")
        view.append(out)
    return view
