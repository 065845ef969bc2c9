import pytest

from models import Piece
from pieces import DEFAULT_LIBRARY, PieceLibrary
from solver.board import Board
from solver.packer import solve

L_TROMINO = ((0, 0), (1, 0), (0, 1))
I_TROMINO = ((0, 0), (1, 0), (2, 0))


@pytest.fixture
def l_pair_library():
    """Two labelled L-trominoes on 2 × 3: two tilings, four labelled solutions."""
    return PieceLibrary([Piece("P", "L", L_TROMINO), Piece("Q", "L", L_TROMINO)], 2, 3)


@pytest.fixture
def line_pair_library():
    return PieceLibrary([Piece("X", "I3", I_TROMINO), Piece("Y", "I3", I_TROMINO)], 1, 6)


@pytest.fixture(scope="session")
def reference_solution():
    board = Board(DEFAULT_LIBRARY.rows, DEFAULT_LIBRARY.cols)
    sol = solve(board, DEFAULT_LIBRARY.ids)
    assert sol is not None
    return sol
