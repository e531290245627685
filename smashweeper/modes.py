from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from .board import Board, Cell, create_empty_board
from .patterns import (
    DEFAULT_PATTERN_ID,
    MinePlacementPattern,
    PatternRegistry,
    PlacementRequest,
    build_pattern_registry,
)
from .turn_clock import TURN_DURATION_SECONDS

logger = logging.getLogger(__name__)

CLASSIC_MODE_ID = "classic"
TIMED_MODE_ID = "timed"


class GameModeExtension:
    """Optional per-mode behaviour hooked into the round lifecycle.

    Every hook is a no-op by default. The two ``check_*`` hooks return ``None``
    to keep the standard rule, or a bool to override it.
    """

    def requires_special_logic(self) -> bool:
        return False

    def on_game_start(self, config: Dict[str, Any]) -> None:
        pass

    def on_cell_revealed(self, row: int, col: int, cell: Cell) -> None:
        pass

    def on_flag_placed(self, row: int, col: int, cell: Cell) -> None:
        pass

    def check_win_condition(self, board: Board, revealed_count: int, total_cells: int) -> Optional[bool]:
        return None

    def check_lose_condition(self, board: Board, clicked_mine: bool) -> Optional[bool]:
        return None

    def on_game_end(self) -> None:
        pass


class TimedExtension(GameModeExtension):
    """Each turn must be played within ``turn_seconds``."""

    def __init__(self, turn_seconds: int = TURN_DURATION_SECONDS) -> None:
        self.turn_seconds = turn_seconds

    def requires_special_logic(self) -> bool:
        return True


@dataclass(frozen=True)
class GameModeDescriptor:
    id: str
    translation_key: str
    order: int
    available_in_singleplayer: bool
    available_in_multiplayer: bool
    requires_special_logic: bool = False
    description_key: Optional[str] = None


@dataclass
class GameMode:
    """Classic reveal/flag rules bound to a placement pattern and an optional extension."""

    mode_id: str
    pattern: MinePlacementPattern
    extension: Optional[GameModeExtension] = None

    def requires_special_logic(self) -> bool:
        return self.extension is not None and self.extension.requires_special_logic()

    @property
    def is_timed(self) -> bool:
        return isinstance(self.extension, TimedExtension)

    @property
    def turn_seconds(self) -> int:
        if isinstance(self.extension, TimedExtension):
            return self.extension.turn_seconds
        return TURN_DURATION_SECONDS

    def create_empty_board(self, rows: int, cols: int) -> Board:
        return create_empty_board(rows, cols)

    def place_mines(self, board: Board, request: PlacementRequest, rng: Optional[random.Random] = None) -> Board:
        return self.pattern.place_mines(board, request, rng)


ExtensionFactory = Callable[[], Optional[GameModeExtension]]


class ModeRegistry:
    """Lookup table of game modes, built once and passed to whatever composes a round."""

    def __init__(self, patterns: PatternRegistry) -> None:
        self.patterns = patterns
        self._factories: Dict[str, ExtensionFactory] = {}
        self._descriptors: Dict[str, GameModeDescriptor] = {}

    def register(self, descriptor: GameModeDescriptor, extension_factory: Optional[ExtensionFactory] = None) -> None:
        if descriptor.id in self._descriptors:
            logger.warning("game mode id=%s already registered, overwriting", descriptor.id)
        self._factories[descriptor.id] = extension_factory or (lambda: None)
        self._descriptors[descriptor.id] = descriptor

    def has(self, mode_id: str) -> bool:
        return mode_id in self._descriptors

    def ids(self) -> List[str]:
        return list(self._descriptors)

    def get_descriptor(self, mode_id: Optional[str]) -> Optional[GameModeDescriptor]:
        if not mode_id:
            return None
        return self._descriptors.get(mode_id)

    def all(self) -> List[GameModeDescriptor]:
        return sorted(self._descriptors.values(), key=lambda d: d.order)

    def singleplayer(self) -> List[GameModeDescriptor]:
        return [d for d in self.all() if d.available_in_singleplayer]

    def multiplayer(self) -> List[GameModeDescriptor]:
        return [d for d in self.all() if d.available_in_multiplayer]

    def translation_key(self, mode_id: Optional[str]) -> str:
        descriptor = self.get_descriptor(mode_id)
        return descriptor.translation_key if descriptor else "modal.classic"

    def is_timed(self, mode_id: Optional[str]) -> bool:
        if not mode_id or mode_id not in self._descriptors:
            return False
        return self.resolve(mode_id).is_timed

    def requires_special_logic(self, mode_id: Optional[str]) -> bool:
        if not mode_id or mode_id not in self._descriptors:
            return False
        return self.resolve(mode_id).requires_special_logic()

    def resolve(self, mode_id: Optional[str] = CLASSIC_MODE_ID, pattern_id: Optional[str] = None) -> GameMode:
        if not mode_id or mode_id not in self._descriptors:
            if mode_id:
                logger.warning("unknown game mode id=%s, using %s", mode_id, CLASSIC_MODE_ID)
            mode_id = CLASSIC_MODE_ID
        pattern = self.patterns.get(pattern_id) if pattern_id else None
        if pattern is None:
            if pattern_id:
                logger.warning("unknown pattern id=%s, using %s", pattern_id, DEFAULT_PATTERN_ID)
            pattern = self.patterns.get(DEFAULT_PATTERN_ID)
        if pattern is None:
            raise KeyError("pattern_not_found")
        return GameMode(mode_id, pattern, self._factories[mode_id]())


def build_mode_registry(patterns: Optional[PatternRegistry] = None) -> ModeRegistry:
    registry = ModeRegistry(patterns or build_pattern_registry())
    registry.register(
        GameModeDescriptor(
            id=CLASSIC_MODE_ID,
            translation_key="modal.classic",
            order=1,
            available_in_singleplayer=True,
            available_in_multiplayer=True,
        ),
    )
    registry.register(
        GameModeDescriptor(
            id=TIMED_MODE_ID,
            translation_key="modal.timed",
            order=2,
            available_in_singleplayer=True,
            available_in_multiplayer=True,
            requires_special_logic=True,
        ),
        TimedExtension,
    )
    return registry


def build_registries() -> Tuple[PatternRegistry, ModeRegistry]:
    patterns = build_pattern_registry()
    return patterns, build_mode_registry(patterns)
