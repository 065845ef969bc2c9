import pytest

from models import Placement, fingerprint
from pieces import DEFAULT_LIBRARY
from solver.board import Board
from solver.generator import seeded_shuffle
from solver.packer import covers_exactly, solve, solve_with_order


def test_full_board_solution_covers_every_cell(reference_solution):
    board = Board(5, 11)
    assert len(reference_solution) == 12
    assert sorted(p.piece_id for p in reference_solution) == list("ABCDEFGHIJKL")
    assert covers_exactly(board, reference_solution)
    # scratch board is handed back untouched
    assert board.empty_count() == 55


def test_solve_reports_stats():
    board = Board(5, 11)
    solve(board, DEFAULT_LIBRARY.ids)
    stats = solve.last_stats
    assert stats["solved"] is True
    assert stats["max_depth"] == 12
    assert stats["nodes"] >= 13
    assert board.snapshot() == (None,) * 55


def test_island_pruning_fails_fast(line_pair_library):
    # two 3-cell bars on a 1 x 5 strip: either placement strands a 2-cell gap
    board = Board(1, 5)
    assert solve(board, ["X", "Y"], line_pair_library) is None
    stats = solve.last_stats
    assert stats["nodes"] == 1
    assert stats["max_depth"] == 0
    assert stats["placements"] == 2
    assert stats["pruned"] == 2
    assert stats["solved"] is False
    assert board.empty_count() == 5


def test_solve_completes_partially_locked_board(l_pair_library):
    board = Board.from_placements(2, 3, [Placement("P", 0, 0, 0)], l_pair_library)
    result = solve(board, ["Q"], l_pair_library)
    assert result is not None
    assert [p.piece_id for p in result] == ["Q"]
    assert covers_exactly(board, result, l_pair_library)


def test_full_board_with_no_pieces_is_trivially_solved(l_pair_library):
    board = Board.from_placements(2, 3, [Placement("P", 0, 0, 0)], l_pair_library)
    assert solve(board, ["Q"], l_pair_library)
    board.place("Q", l_pair_library.shape_of("Q", 2), 1, 0)
    assert board.is_full()
    assert solve(board, [], l_pair_library) == []


def test_solve_with_order_is_reproducible_per_seed():
    order = seeded_shuffle(DEFAULT_LIBRARY.ids, 42)
    first = solve_with_order(Board(5, 11), order)
    second = solve_with_order(Board(5, 11), order)
    assert first is not None
    assert first == second
    assert covers_exactly(Board(5, 11), first)


def test_solve_with_order_follows_caller_order(l_pair_library):
    forward = solve_with_order(Board(2, 3), ["P", "Q"], l_pair_library)
    backward = solve_with_order(Board(2, 3), ["Q", "P"], l_pair_library)
    assert forward[0].piece_id == "P"
    assert backward[0].piece_id == "Q"
    assert fingerprint(forward) != fingerprint(backward)


def test_unknown_piece_id_raises():
    with pytest.raises(KeyError):
        solve(Board(5, 11), ["A", "nope"])


def test_duplicate_ids_count_once(l_pair_library):
    result = solve(Board(2, 3), ["P", "P", "Q"], l_pair_library)
    assert sorted(p.piece_id for p in result) == ["P", "Q"]


def test_covers_exactly_rejects_gaps_and_overlaps(l_pair_library):
    board = Board(2, 3)
    assert not covers_exactly(board, [Placement("P", 0, 0, 0)], l_pair_library)
    assert not covers_exactly(
        board, [Placement("P", 0, 0, 0), Placement("Q", 0, 0, 0)], l_pair_library
    )
    assert not covers_exactly(board, [Placement("P", 9, 0, 0)], l_pair_library)
