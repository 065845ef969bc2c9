import pytest

from models import Piece
from pieces import DEFAULT_LIBRARY, PIECES, InvariantViolation, PieceLibrary, parse_piece_library

DOMINO = ((0, 0), (1, 0))


def test_default_library_fills_five_by_eleven():
    assert (DEFAULT_LIBRARY.rows, DEFAULT_LIBRARY.cols) == (5, 11)
    assert len(DEFAULT_LIBRARY) == 12
    assert DEFAULT_LIBRARY.ids == tuple("ABCDEFGHIJKL")
    assert sum(DEFAULT_LIBRARY.sizes) == 55
    assert DEFAULT_LIBRARY.piece("L").size == 3
    assert DEFAULT_LIBRARY.piece("K").size == 4


def test_library_normalizes_shapes():
    lib = PieceLibrary([Piece("P", "offset", ((3, 2), (4, 2)))], 1, 2)
    assert lib.piece("P").shape == DOMINO
    assert lib.shape_of("P", 0) == DOMINO
    assert len(lib.orientations_of("P")) == 2


def test_cell_count_mismatch_is_fatal():
    with pytest.raises(InvariantViolation, match="Cell count is 55, expected 54"):
        PieceLibrary(PIECES, 6, 9)


@pytest.mark.parametrize(
    "pieces, reason",
    [
        ([], "empty"),
        ([Piece("A", "a", DOMINO), Piece("A", "b", DOMINO)], "Duplicate"),
        ([Piece("A", "a", ((0, 0), (0, 0), (1, 0), (2, 0)))], "repeats"),
        ([Piece("A", "a", ((0, 0), (2, 0), (1, 1), (3, 1)))], "connected"),
    ],
)
def test_malformed_libraries_are_rejected(pieces, reason):
    with pytest.raises(InvariantViolation, match=reason):
        PieceLibrary(pieces, 1, 4)


def test_non_positive_grid_is_rejected():
    with pytest.raises(InvariantViolation):
        PieceLibrary([Piece("A", "a", DOMINO)], 0, 2)


def test_unknown_piece_id_raises_key_error():
    with pytest.raises(KeyError, match="Unknown piece id 'Z'"):
        DEFAULT_LIBRARY.indices_for(["A", "Z"])


def test_describe_reports_orientation_counts():
    info = DEFAULT_LIBRARY.describe()
    counts = {p["id"]: p["orientations"] for p in info["pieces"]}
    assert info["rows"] == 5 and info["cols"] == 11
    assert counts["K"] == 1
    assert counts["L"] == 2


def test_parse_piece_library_accepts_json_payload():
    lib, err = parse_piece_library({
        "rows": 2,
        "cols": 2,
        "pieces": [
            {"id": "top", "shape": [[0, 0], [1, 0]]},
            {"id": "bottom", "shape": [["0", "5"], ["1", "5"]], "color": "#000"},
        ],
    })
    assert err is None
    assert lib.ids == ("top", "bottom")
    assert lib.piece("bottom").shape == DOMINO
    assert lib.piece("bottom").color == "#000"


@pytest.mark.parametrize(
    "payload, fragment",
    [
        (None, "nothing parsed"),
        ({"pieces": "A"}, "nothing parsed"),
        ({"pieces": [1]}, "not an object"),
        ({"pieces": [{"shape": [[0, 0]]}]}, "no id"),
        ({"pieces": [{"id": "A", "shape": [[0]]}]}, "malformed"),
        ({"rows": 1, "cols": 3, "pieces": [{"id": "A", "shape": [[0, 0], [1, 0]]}]}, "Cell count"),
    ],
)
def test_parse_piece_library_reports_errors(payload, fragment):
    lib, err = parse_piece_library(payload)
    assert lib is None
    assert fragment in err


@pytest.mark.parametrize("orientation", [-1, 2])
def test_shape_of_rejects_out_of_range_orientations(orientation):
    with pytest.raises(IndexError):
        DEFAULT_LIBRARY.shape_of("L", orientation)
