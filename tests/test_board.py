import pytest

from smashweeper.board import Cell, create_empty_board, neighbors, safe_zone, with_mines


def test_create_empty_board():
    b = create_empty_board(4, 6)
    assert (b.rows, b.cols, b.total_cells) == (4, 6, 24)
    assert all(not c.is_mine and not c.is_revealed and not c.is_flagged and c.neighbor_mines == 0 for c in b)
    assert b.cell(3, 5) == Cell(3, 5)


@pytest.mark.parametrize("rows,cols", [(0, 5), (5, 0), (-1, 3)])
def test_create_empty_board_rejects_non_positive_size(rows, cols):
    with pytest.raises(ValueError):
        create_empty_board(rows, cols)


def test_neighbors_clip_to_board():
    assert set(neighbors(0, 0, 3, 3)) == {(0, 1), (1, 0), (1, 1)}
    assert len(list(neighbors(1, 1, 3, 3))) == 8


def test_safe_zone_includes_clicked_cell():
    assert safe_zone(0, 0, 5, 5) == {(0, 0), (0, 1), (1, 0), (1, 1)}
    assert len(safe_zone(2, 2, 5, 5)) == 9


def test_with_mines_recounts_from_scratch():
    b = with_mines(create_empty_board(3, 3), {(0, 0), (2, 2)})
    assert b.mine_count == 2
    assert b.cell(1, 1).neighbor_mines == 2
    assert b.cell(0, 1).neighbor_mines == 1
    assert b.cell(0, 2).neighbor_mines == 0
    # adding a mine later recomputes every count
    b2 = with_mines(b, {(0, 2)})
    assert b2.mine_count == 3
    assert b2.cell(1, 1).neighbor_mines == 3
    assert b.cell(1, 1).neighbor_mines == 2


def test_with_cells_copies():
    b = create_empty_board(2, 2)
    nb = b.with_cells({(0, 1): Cell(0, 1, is_flagged=True)})
    assert nb.flagged_count == 1
    assert b.flagged_count == 0
    assert b.with_cells({}) is b
