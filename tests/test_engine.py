from dataclasses import replace

import pytest

from smashweeper.board import Board, create_empty_board, with_mines
from smashweeper.game_engine import (
    RoundStatus,
    apply_flag,
    apply_reveal,
    is_win,
    reveal_cell,
    set_flag,
    to_client_view,
    toggle_flag,
)


def make_board(rows: int, cols: int, mines) -> Board:
    return with_mines(create_empty_board(rows, cols), mines)


def revealed(board: Board):
    return {(c.row, c.col) for c in board if c.is_revealed}


def test_zero_region_opens_every_safe_cell_in_one_call():
    b = make_board(5, 5, {(0, 0), (4, 4)})
    nb = reveal_cell(b, 2, 2)
    assert nb.revealed_count == 23
    assert not nb.cell(0, 0).is_revealed
    assert not nb.cell(4, 4).is_revealed


def test_reveal_zero_region_plus_numbered_border_only():
    b = make_board(5, 5, {(0, 0), (0, 2), (0, 4)})
    nb = reveal_cell(b, 2, 2)
    # (0, 1) and (0, 3) only touch numbered cells
    assert revealed(nb) == {(r, c) for r in range(5) for c in range(5)} - {
        (0, 0), (0, 1), (0, 2), (0, 3), (0, 4)
    }
    assert nb.cell(1, 1).neighbor_mines == 2
    assert nb.cell(1, 0).neighbor_mines == 1


def test_numbered_cell_reveals_only_itself():
    b = make_board(5, 5, {(0, 0)})
    nb = reveal_cell(b, 1, 1)
    assert revealed(nb) == {(1, 1)}


def test_flags_block_the_flood_fill():
    b = create_empty_board(3, 5)
    for r in range(3):
        b = set_flag(b, r, 2, True)
    nb = reveal_cell(b, 1, 0)
    assert revealed(nb) == {(r, c) for r in range(3) for c in range(2)}
    assert all(nb.cell(r, 2).is_flagged and not nb.cell(r, 2).is_revealed for r in range(3))


def test_repeated_reveal_is_noop():
    b = make_board(5, 5, {(0, 0), (4, 4)})
    nb = reveal_cell(b, 2, 2)
    assert reveal_cell(nb, 2, 2) is nb
    nb2, res = apply_reveal(nb, 2, 2)
    assert nb2 is nb
    assert res["cleared_cells"] == 0


def test_reveal_flagged_cell_is_noop():
    b = toggle_flag(make_board(5, 5, {(0, 0)}), 3, 3)
    assert reveal_cell(b, 3, 3) is b


def test_reveal_does_not_mutate_input_board():
    b = make_board(5, 5, {(0, 0), (4, 4)})
    reveal_cell(b, 2, 2)
    assert b.revealed_count == 0


def test_reveal_mine_loses_and_discloses_every_mine():
    mines = {(0, 0), (0, 2), (4, 4)}
    b = make_board(5, 5, mines)
    nb, res = apply_reveal(b, 0, 2)
    assert res["hit_mine"] is True
    assert res["status_after"] == RoundStatus.LOST
    assert all(nb.cell(r, c).is_revealed for r, c in mines)
    assert nb.revealed_count == len(mines)


def test_win_when_all_non_mines_revealed():
    b = make_board(5, 5, {(1, 1), (3, 3)})
    b = b.map_cells(lambda c: c if c.is_mine else replace(c, is_revealed=True))
    assert is_win(b)
    assert b.revealed_count == b.total_cells - b.mine_count


def test_not_won_while_a_safe_cell_is_hidden():
    b = make_board(5, 5, {(0, 0), (0, 2), (0, 4)})
    nb, res = apply_reveal(b, 2, 2)
    assert res["status_after"] == RoundStatus.PLAYING
    assert not is_win(nb)


def test_winning_reveal_flags_mines_and_opens_the_rest():
    b = make_board(5, 5, {(0, 0), (0, 2), (0, 4)})
    b, _ = apply_reveal(b, 2, 2)
    b, _ = apply_reveal(b, 0, 1)
    nb, res = apply_reveal(b, 0, 3)
    assert res["status_after"] == RoundStatus.WON
    assert all(c.is_flagged for c in nb if c.is_mine)
    assert all(c.is_revealed for c in nb if not c.is_mine)


def test_flag_toggle_and_no_flag_on_revealed():
    b = make_board(5, 5, {(0, 0)})
    b2, res = apply_flag(b, 0, 0, actor_id="p1")
    assert res["flags_total"] == 1
    assert b2.cell(0, 0).flagged_by == "p1"
    b3, res = apply_flag(b2, 0, 0)
    assert res["flags_total"] == 0
    assert b3.cell(0, 0).flagged_by is None
    b4 = reveal_cell(b3, 1, 1)
    b5, res = apply_flag(b4, 1, 1)
    assert b5 is b4
    assert res["flags_total"] == 0


def test_out_of_bounds_raises():
    b = create_empty_board(5, 5)
    with pytest.raises(ValueError) as exc:
        apply_reveal(b, 5, 0)
    assert str(exc.value) == "out_of_bounds"
    with pytest.raises(ValueError):
        toggle_flag(b, 0, -1)


def test_to_client_view_hides_mines_while_playing():
    b = toggle_flag(make_board(5, 5, {(0, 0), (4, 4)}), 0, 0)
    view = to_client_view(b, RoundStatus.PLAYING)
    assert view[0][0] == "F"
    assert view[4][4] == "H"
    nb = reveal_cell(b, 2, 2)
    view = to_client_view(nb, RoundStatus.PLAYING)
    assert view[2][2] == "0"
    assert view[1][1] == "1"
    assert view[3][3] == "1"
    over = to_client_view(nb, RoundStatus.LOST)
    assert over[4][4] == "M"
