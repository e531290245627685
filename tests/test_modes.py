import logging
import random

import pytest

from smashweeper.board import create_empty_board, with_mines
from smashweeper.game_engine import RoundStatus, apply_reveal
from smashweeper.modes import (
    GameModeDescriptor,
    GameModeExtension,
    ModeRegistry,
    TimedExtension,
    build_mode_registry,
)
from smashweeper.patterns import LinesPattern, PatternRegistry, PlacementRequest, UniformPattern


class FirstRevealWins(GameModeExtension):
    def requires_special_logic(self):
        return True

    def check_win_condition(self, board, revealed_count, total_cells):
        return revealed_count > 0


class MinesAreHarmless(GameModeExtension):
    def check_lose_condition(self, board, clicked_mine):
        return False


def test_registry_lists_modes_in_order():
    modes = build_mode_registry()
    assert [d.id for d in modes.all()] == ["classic", "timed"]
    assert [d.id for d in modes.singleplayer()] == ["classic", "timed"]
    assert [d.id for d in modes.multiplayer()] == ["classic", "timed"]
    assert modes.translation_key("timed") == "modal.timed"
    assert modes.translation_key("nope") == "modal.classic"
    assert modes.is_timed("timed")
    assert not modes.is_timed("classic")
    assert modes.requires_special_logic("timed")
    assert not modes.requires_special_logic("classic")
    assert not modes.requires_special_logic(None)


def test_resolve_binds_pattern_and_extension():
    modes = build_mode_registry()
    mode = modes.resolve("timed", "lines")
    assert mode.mode_id == "timed"
    assert isinstance(mode.pattern, LinesPattern)
    assert isinstance(mode.extension, TimedExtension)
    assert mode.is_timed and mode.turn_seconds == 15
    classic = modes.resolve("classic")
    assert classic.extension is None
    assert isinstance(classic.pattern, UniformPattern)
    assert not classic.requires_special_logic()


def test_resolve_falls_back_for_unknown_ids(caplog):
    modes = build_mode_registry()
    with caplog.at_level(logging.WARNING):
        mode = modes.resolve("speedrun", "spiral")
    assert mode.mode_id == "classic"
    assert mode.pattern.pattern_id == "default"
    assert "unknown game mode" in caplog.text
    assert "unknown pattern" in caplog.text


def test_resolve_without_default_pattern_raises():
    modes = ModeRegistry(PatternRegistry())
    modes.register(GameModeDescriptor("classic", "modal.classic", 1, True, True))
    with pytest.raises(KeyError):
        modes.resolve("classic")


def test_each_resolve_builds_a_fresh_extension():
    modes = build_mode_registry()
    assert modes.resolve("timed").extension is not modes.resolve("timed").extension


def test_register_overwrites_with_warning(caplog):
    modes = build_mode_registry()
    with caplog.at_level(logging.WARNING):
        modes.register(GameModeDescriptor("classic", "modal.other", 9, True, False))
    assert "already registered" in caplog.text
    assert [d.id for d in modes.all()] == ["timed", "classic"]
    assert [d.id for d in modes.multiplayer()] == ["timed"]


def test_custom_extension_overrides_win_condition():
    modes = build_mode_registry()
    modes.register(GameModeDescriptor("sprint", "modal.sprint", 3, True, False, True), FirstRevealWins)
    mode = modes.resolve("sprint")
    assert mode.requires_special_logic()
    board = with_mines(create_empty_board(5, 5), {(0, 0), (0, 2), (0, 4)})
    nb, res = apply_reveal(board, 2, 2, mode.extension)
    # (0, 1) and (0, 3) were still hidden, the extension decided the win
    assert res["status_after"] == RoundStatus.WON
    assert nb.cell(0, 1).is_revealed


def test_custom_extension_overrides_lose_condition():
    board = with_mines(create_empty_board(5, 5), {(0, 0), (4, 4)})
    nb, res = apply_reveal(board, 0, 0, MinesAreHarmless())
    assert res["hit_mine"] is True
    assert res["status_after"] == RoundStatus.PLAYING
    assert not nb.cell(4, 4).is_revealed


def test_mode_places_mines_through_its_pattern():
    mode = build_mode_registry().resolve("classic")
    board = mode.create_empty_board(9, 9)
    placed = mode.place_mines(board, PlacementRequest(10, 4, 4, 9, 9), random.Random(1))
    assert placed.mine_count == 10


def test_registry_timed_answer_follows_the_extension():
    modes = build_mode_registry()
    modes.register(GameModeDescriptor("blitz", "modal.blitz", 3, True, True, True), lambda: TimedExtension(5))
    assert modes.is_timed("blitz")
    assert modes.resolve("blitz").turn_seconds == 5
    assert not modes.is_timed("classic")
    assert not modes.is_timed("nope")
