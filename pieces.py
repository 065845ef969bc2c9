# pieces.py — piece library, load-time validation, payload parsing
from __future__ import annotations

from collections import deque
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from config import CFG
from models import Piece, Shape
from solver.orientations import generate_orientations, normalize


class InvariantViolation(ValueError):
    """The piece library cannot tile the grid it was declared for."""


# Each shape is (col, row) pairs; (0, 0) is the top-left of the bounding box.
# Cell counts: 4+5+4+5+5+5+5+5+5+5+4+3 = 55, which fills 5 × 11 exactly.
PIECES: Tuple[Piece, ...] = (
    Piece("A", "L-shape",          ((0, 0), (1, 0), (2, 0), (2, 1)),         "#78B159"),
    Piece("B", "S-pentomino",      ((0, 0), (1, 0), (1, 1), (2, 1), (2, 2)), "#2E8B57"),
    Piece("C", "T-tetromino",      ((0, 0), (1, 0), (2, 0), (1, 1)),         "#FFD700"),
    Piece("D", "Long L",           ((0, 0), (1, 0), (2, 0), (3, 0), (3, 1)), "#FF8C00"),
    Piece("E", "Z-pentomino",      ((0, 0), (1, 0), (1, 1), (2, 1), (3, 1)), "#DC143C"),
    Piece("F", "Y-pentomino",      ((0, 0), (1, 0), (2, 0), (3, 0), (1, 1)), "#8B0000"),
    Piece("G", "J-pentomino",      ((0, 0), (0, 1), (1, 1), (2, 1), (3, 1)), "#FF69B4"),
    Piece("H", "Reverse-L",        ((0, 0), (1, 0), (2, 0), (3, 0), (0, 1)), "#87CEEB"),
    Piece("I", "U-pentomino",      ((0, 0), (1, 0), (2, 0), (0, 1), (2, 1)), "#4169E1"),
    Piece("J", "S-pentomino-3row", ((0, 0), (0, 1), (1, 1), (1, 2), (2, 2)), "#9370DB"),
    Piece("K", "2x2 square",       ((0, 0), (1, 0), (0, 1), (1, 1)),         "#20B2AA"),
    Piece("L", "Straight line",    ((0, 0), (1, 0), (2, 0)),                 "#808080"),
)


def _is_connected(shape: Shape) -> bool:
    cells = set(shape)
    if not cells:
        return False
    start = next(iter(cells))
    seen = {start}
    queue = deque([start])
    while queue:
        c, r = queue.popleft()
        for nb in ((c - 1, r), (c + 1, r), (c, r - 1), (c, r + 1)):
            if nb in cells and nb not in seen:
                seen.add(nb)
                queue.append(nb)
    return len(seen) == len(cells)


def validate_library(pieces: Sequence[Piece], rows: int, cols: int) -> None:
    """Raise :class:`InvariantViolation` unless ``pieces`` can exactly tile the grid."""

    if rows <= 0 or cols <= 0:
        raise InvariantViolation(f"Grid must be positive, got {rows} × {cols}")
    if not pieces:
        raise InvariantViolation("Piece library is empty")

    seen_ids = set()
    for piece in pieces:
        if piece.id in seen_ids:
            raise InvariantViolation(f"Duplicate piece id {piece.id!r}")
        seen_ids.add(piece.id)
        if len(set(piece.shape)) != len(piece.shape):
            raise InvariantViolation(f"Piece {piece.id} repeats a cell")
        if not _is_connected(piece.shape):
            raise InvariantViolation(f"Piece {piece.id} is not a connected polyomino")

    total = sum(p.size for p in pieces)
    if total != rows * cols:
        raise InvariantViolation(
            f"Cell count is {total}, expected {rows * cols} for a {rows} × {cols} grid"
        )


class PieceLibrary:
    """Closed piece set for one grid, with orientation tables built once.

    Pieces are addressed by a small integer index in the search; ``index``
    maps the public id to it.  Every per-piece table is a tuple so nothing in
    the hot path hashes.
    """

    def __init__(self, pieces: Iterable[Piece], rows: int, cols: int):
        normalized = tuple(
            Piece(p.id, p.name, normalize(p.shape), p.color) for p in pieces
        )
        validate_library(normalized, rows, cols)

        self.rows = int(rows)
        self.cols = int(cols)
        self.pieces: Tuple[Piece, ...] = normalized
        self.ids: Tuple[str, ...] = tuple(p.id for p in normalized)
        self.index: Dict[str, int] = {pid: i for i, pid in enumerate(self.ids)}
        self.sizes: Tuple[int, ...] = tuple(p.size for p in normalized)
        self.orientations: Tuple[Tuple[Shape, ...], ...] = tuple(
            generate_orientations(p) for p in normalized
        )

    def __len__(self) -> int:
        return len(self.pieces)

    def piece(self, piece_id: str) -> Piece:
        return self.pieces[self.index[piece_id]]

    def orientations_of(self, piece_id: str) -> Tuple[Shape, ...]:
        return self.orientations[self.index[piece_id]]

    def shape_of(self, piece_id: str, orientation: int) -> Shape:
        table = self.orientations[self.index[piece_id]]
        if not 0 <= orientation < len(table):
            raise IndexError(f"Piece {piece_id} has no orientation {orientation}")
        return table[orientation]

    def indices_for(self, piece_ids: Iterable[str]) -> List[int]:
        out: List[int] = []
        for pid in piece_ids:
            try:
                out.append(self.index[pid])
            except KeyError:
                raise KeyError(f"Unknown piece id {pid!r}") from None
        return out

    def describe(self) -> Dict[str, Any]:
        return {
            "rows": self.rows,
            "cols": self.cols,
            "pieces": [
                {
                    "id": p.id,
                    "name": p.name,
                    "size": p.size,
                    "orientations": len(self.orientations[i]),
                }
                for i, p in enumerate(self.pieces)
            ],
        }


def _to_int(x: Any) -> Optional[int]:
    try:
        return int(float(x))
    except (TypeError, ValueError):
        return None


def _parse_shape(raw: Any) -> Optional[Shape]:
    if not isinstance(raw, (list, tuple)) or not raw:
        return None
    cells = []
    for cell in raw:
        if not isinstance(cell, (list, tuple)) or len(cell) != 2:
            return None
        c, r = _to_int(cell[0]), _to_int(cell[1])
        if c is None or r is None:
            return None
        cells.append((c, r))
    return normalize(cells)


def parse_piece_library(payload: Any) -> Tuple[Optional[PieceLibrary], Optional[str]]:
    """Return (library, error_message_or_None) from a JSON-like payload.

    Accepted shape::

        {"rows": 5, "cols": 11, "pieces": [{"id": "A", "shape": [[0,0],[1,0]]}, ...]}

    ``rows``/``cols`` fall back to the configured grid.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("pieces"), list):
        return None, "nothing parsed from request"

    rows = _to_int(payload.get("rows")) or CFG.ROWS
    cols = _to_int(payload.get("cols")) or CFG.COLS

    parsed: List[Piece] = []
    for i, item in enumerate(payload["pieces"]):
        if not isinstance(item, dict):
            return None, f"piece #{i} is not an object"
        pid = str(item.get("id") or "").strip()
        if not pid:
            return None, f"piece #{i} has no id"
        shape = _parse_shape(item.get("shape"))
        if shape is None:
            return None, f"piece {pid} has a malformed shape"
        parsed.append(Piece(pid, str(item.get("name") or pid), shape, str(item.get("color") or "")))

    try:
        return PieceLibrary(parsed, rows, cols), None
    except InvariantViolation as exc:
        return None, str(exc)


# Built once at import; a bad default library is fatal.
DEFAULT_LIBRARY = PieceLibrary(PIECES, CFG.ROWS, CFG.COLS)


__all__ = [
    "InvariantViolation",
    "PIECES",
    "PieceLibrary",
    "validate_library",
    "parse_piece_library",
    "DEFAULT_LIBRARY",
]
