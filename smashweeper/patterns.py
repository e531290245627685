from __future__ import annotations

import logging
import math
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Hashable, List, Optional, Set, Tuple

from .board import Board, Coord, safe_zone, with_mines

logger = logging.getLogger(__name__)

DEFAULT_PATTERN_ID = "default"
LINES_PATTERN_ID = "lines"


@dataclass(frozen=True)
class PlacementRequest:
    mine_count: int
    exclude_row: int
    exclude_col: int
    rows: int
    cols: int

    @property
    def safe_zone(self) -> Set[Coord]:
        return safe_zone(self.exclude_row, self.exclude_col, self.rows, self.cols)

    def available_cells(self) -> int:
        return self.rows * self.cols - len(self.safe_zone)


class MinePlacementPattern(ABC):
    """Decides which cells of an empty board become mines."""

    pattern_id: str = ""

    def place_mines(
        self,
        board: Board,
        request: PlacementRequest,
        rng: Optional[random.Random] = None,
    ) -> Board:
        if request.mine_count > request.available_cells():
            raise ValueError("insufficient_space_for_mines")
        rng = rng or random.Random()
        mines = self._choose_mines(request, rng)
        return with_mines(board, mines)

    @abstractmethod
    def _choose_mines(self, request: PlacementRequest, rng: random.Random) -> Set[Coord]:
        ...


class UniformPattern(MinePlacementPattern):
    pattern_id = DEFAULT_PATTERN_ID

    def _choose_mines(self, request: PlacementRequest, rng: random.Random) -> Set[Coord]:
        zone = request.safe_zone
        mines: Set[Coord] = set()
        while len(mines) < request.mine_count:
            pos = (rng.randrange(request.rows), rng.randrange(request.cols))
            if pos in mines or pos in zone:
                continue
            mines.add(pos)
        return mines


def bresenham_line(r0: int, c0: int, r1: int, c1: int) -> List[Coord]:
    line: List[Coord] = []
    dr = abs(r1 - r0)
    dc = abs(c1 - c0)
    sr = 1 if r0 < r1 else -1
    sc = 1 if c0 < c1 else -1
    err = dc - dr
    r, c = r0, c0
    while True:
        line.append((r, c))
        if r == r1 and c == c1:
            break
        e2 = 2 * err
        if e2 > -dr:
            err -= dr
            c += sc
        if e2 < dc:
            err += dc
            r += sr
    return line


def walk(start_r: int, start_c: int, dir_r: int, dir_c: int, rows: int, cols: int) -> List[Coord]:
    line: List[Coord] = []
    r, c = start_r, start_c
    while 0 <= r < rows and 0 <= c < cols:
        line.append((r, c))
        r += dir_r
        c += dir_c
    return line


class _Placer:
    """Accumulates mines for one request, refusing the safe zone and duplicates."""

    def __init__(self, request: PlacementRequest) -> None:
        self.request = request
        self.zone = request.safe_zone
        self.mines: Set[Coord] = set()

    @property
    def done(self) -> bool:
        return len(self.mines) >= self.request.mine_count

    def is_valid(self, pos: Coord) -> bool:
        r, c = pos
        return (
            0 <= r < self.request.rows
            and 0 <= c < self.request.cols
            and pos not in self.mines
            and pos not in self.zone
        )

    def place_all(self, line: List[Coord]) -> int:
        placed = 0
        for pos in line:
            if self.done:
                break
            if self.is_valid(pos):
                self.mines.add(pos)
                placed += 1
        return placed


class LinesPattern(MinePlacementPattern):
    """Mines clustered along straight lines, with an occasional corner line or star-burst."""

    pattern_id = LINES_PATTERN_ID

    corner_line_chance = 0.12
    star_burst_chance = 0.13
    min_rays = 6
    max_rays = 11
    ray_length_factor = 0.8
    max_idle_attempts = 300

    def _choose_mines(self, request: PlacementRequest, rng: random.Random) -> Set[Coord]:
        placer = _Placer(request)

        special = rng.random()
        if special < self.corner_line_chance:
            line = self._corner_to_corner(request, rng)
            if line:
                placer.place_all(line)
        elif special < self.corner_line_chance + self.star_burst_chance:
            placer.place_all(self._star_burst(request, rng))

        used: Set[Hashable] = set()
        attempts = 0
        while not placer.done and attempts < self.max_idle_attempts:
            key, line = self._random_line(request, rng)
            if key in used or not line:
                attempts += 1
                continue
            used.add(key)
            if placer.place_all(line) > 0:
                attempts = 0
            else:
                attempts += 1

        if not placer.done:
            remaining = [
                (r, c)
                for r in range(request.rows)
                for c in range(request.cols)
                if placer.is_valid((r, c))
            ]
            rng.shuffle(remaining)
            logger.debug(
                "lines pattern fallback placed=%d needed=%d candidates=%d",
                len(placer.mines), request.mine_count, len(remaining),
            )
            placer.place_all(remaining)

        return placer.mines

    def _corner_to_corner(self, request: PlacementRequest, rng: random.Random) -> Optional[List[Coord]]:
        last_r, last_c = request.rows - 1, request.cols - 1
        corners = list(dict.fromkeys([(0, 0), (0, last_c), (last_r, 0), (last_r, last_c)]))
        if len(corners) < 2:
            return None
        start, end = rng.sample(corners, 2)
        return bresenham_line(start[0], start[1], end[0], end[1])

    def _star_burst(self, request: PlacementRequest, rng: random.Random) -> List[Coord]:
        center_r = request.rows // 2
        center_c = request.cols // 2
        num_rays = rng.randint(self.min_rays, self.max_rays)
        length = min(request.rows, request.cols) * self.ray_length_factor
        points: List[Coord] = []
        for i in range(num_rays):
            angle = (i / num_rays) * math.pi * 2
            end_r = round(center_r + math.sin(angle) * length)
            end_c = round(center_c + math.cos(angle) * length)
            points.extend(bresenham_line(center_r, center_c, end_r, end_c))
        return points

    def _random_line(self, request: PlacementRequest, rng: random.Random) -> Tuple[Hashable, List[Coord]]:
        rows, cols = request.rows, request.cols
        style = rng.random()
        if style < 0.3:
            col = rng.randrange(cols)
            if rng.random() > 0.5:
                return ("v", col), walk(0, col, 1, 0, rows, cols)
            return ("v", col), walk(rows - 1, col, -1, 0, rows, cols)
        if style < 0.6:
            row = rng.randrange(rows)
            if rng.random() > 0.5:
                return ("h", row), walk(row, 0, 0, 1, rows, cols)
            return ("h", row), walk(row, cols - 1, 0, -1, rows, cols)
        if style < 0.8:
            edge = rng.randrange(4)
            sign = 1 if rng.random() > 0.5 else -1
            if edge == 0:
                start, direction = (0, rng.randrange(cols)), (1, sign)
            elif edge == 1:
                start, direction = (rows - 1, rng.randrange(cols)), (-1, sign)
            elif edge == 2:
                start, direction = (rng.randrange(rows), 0), (sign, 1)
            else:
                start, direction = (rng.randrange(rows), cols - 1), (sign, -1)
            return ("d", edge, start, direction), walk(start[0], start[1], direction[0], direction[1], rows, cols)
        edges = [
            (0, rng.randrange(cols)),
            (rows - 1, rng.randrange(cols)),
            (rng.randrange(rows), 0),
            (rng.randrange(rows), cols - 1),
        ]
        start = rng.choice(edges)
        end = rng.choice(edges)
        return ("b", start, end), bresenham_line(start[0], start[1], end[0], end[1])


@dataclass(frozen=True)
class PatternMetadata:
    id: str
    translation_key: str
    order: int


class PatternRegistry:
    """Lookup table of placement patterns, built once at startup."""

    def __init__(self) -> None:
        self._patterns: Dict[str, MinePlacementPattern] = {}
        self._metadata: Dict[str, PatternMetadata] = {}

    def register(self, pattern: MinePlacementPattern, metadata: PatternMetadata) -> None:
        if metadata.id in self._patterns:
            logger.warning("pattern id=%s already registered, overwriting", metadata.id)
        self._patterns[metadata.id] = pattern
        self._metadata[metadata.id] = metadata

    def get(self, pattern_id: str) -> Optional[MinePlacementPattern]:
        return self._patterns.get(pattern_id)

    def get_metadata(self, pattern_id: str) -> Optional[PatternMetadata]:
        return self._metadata.get(pattern_id)

    def has(self, pattern_id: str) -> bool:
        return pattern_id in self._patterns

    def ids(self) -> List[str]:
        return list(self._patterns)

    def all(self) -> List[Tuple[MinePlacementPattern, PatternMetadata]]:
        entries = [(self._patterns[pid], meta) for pid, meta in self._metadata.items()]
        return sorted(entries, key=lambda e: e[1].order)


def build_pattern_registry() -> PatternRegistry:
    registry = PatternRegistry()
    registry.register(
        UniformPattern(),
        PatternMetadata(id=DEFAULT_PATTERN_ID, translation_key="modal.patterns.classic", order=1),
    )
    registry.register(
        LinesPattern(),
        PatternMetadata(id=LINES_PATTERN_ID, translation_key="modal.patterns.lines", order=2),
    )
    return registry
