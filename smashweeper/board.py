from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

Coord = Tuple[int, int]


@dataclass(frozen=True)
class Cell:
    row: int
    col: int
    is_mine: bool = False
    is_revealed: bool = False
    is_flagged: bool = False
    neighbor_mines: int = 0
    flagged_by: Optional[str] = None


@dataclass(frozen=True)
class Board:
    """Immutable grid of cells. Every change produces a new Board."""

    rows: int
    cols: int
    cells: Tuple[Tuple[Cell, ...], ...]

    def __iter__(self) -> Iterator[Cell]:
        for row in self.cells:
            yield from row

    def cell(self, row: int, col: int) -> Cell:
        return self.cells[row][col]

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.rows and 0 <= col < self.cols

    @property
    def total_cells(self) -> int:
        return self.rows * self.cols

    @property
    def mine_count(self) -> int:
        return sum(1 for c in self if c.is_mine)

    @property
    def revealed_count(self) -> int:
        return sum(1 for c in self if c.is_revealed)

    @property
    def flagged_count(self) -> int:
        return sum(1 for c in self if c.is_flagged)

    def mines(self) -> Set[Coord]:
        return {(c.row, c.col) for c in self if c.is_mine}

    def to_rows(self) -> List[List[Cell]]:
        return [list(row) for row in self.cells]

    @classmethod
    def from_rows(cls, grid: Sequence[Sequence[Cell]]) -> "Board":
        rows = len(grid)
        cols = len(grid[0]) if rows else 0
        return cls(rows, cols, tuple(tuple(row) for row in grid))

    def with_cells(self, updates: Dict[Coord, Cell]) -> "Board":
        if not updates:
            return self
        grid = self.to_rows()
        for (r, c), cell in updates.items():
            grid[r][c] = cell
        return Board.from_rows(grid)

    def map_cells(self, fn: Callable[[Cell], Cell]) -> "Board":
        return Board(self.rows, self.cols, tuple(tuple(fn(c) for c in row) for row in self.cells))


def create_empty_board(rows: int, cols: int) -> Board:
    if rows <= 0 or cols <= 0:
        raise ValueError("invalid_board_size")
    return Board(
        rows,
        cols,
        tuple(tuple(Cell(r, c) for c in range(cols)) for r in range(rows)),
    )


def neighbors(r: int, c: int, rows: int, cols: int) -> Iterator[Coord]:
    for nr in range(max(0, r - 1), min(rows, r + 2)):
        for nc in range(max(0, c - 1), min(cols, c + 2)):
            if nr == r and nc == c:
                continue
            yield nr, nc


def safe_zone(row: int, col: int, rows: int, cols: int) -> Set[Coord]:
    zone = {(row, col)}
    zone.update(neighbors(row, col, rows, cols))
    return zone


def count_neighbor_mines(mines: Set[Coord], r: int, c: int, rows: int, cols: int) -> int:
    return sum(1 for n in neighbors(r, c, rows, cols) if n in mines)


def with_mines(board: Board, mines: Iterable[Coord]) -> Board:
    """Mark ``mines`` on a copy of ``board`` and recount every non-mine cell from scratch."""
    mined = board.mines() | set(mines)
    grid: List[List[Cell]] = []
    for row in board.cells:
        out: List[Cell] = []
        for cell in row:
            pos = (cell.row, cell.col)
            if pos in mined:
                out.append(replace(cell, is_mine=True, neighbor_mines=0))
            else:
                cnt = count_neighbor_mines(mined, cell.row, cell.col, board.rows, board.cols)
                out.append(replace(cell, is_mine=False, neighbor_mines=cnt))
        grid.append(out)
    return Board.from_rows(grid)
