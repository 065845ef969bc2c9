# solver/packer.py — first-solution exact-cover search
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from models import Placement
from pieces import DEFAULT_LIBRARY, PieceLibrary
from solver.board import Board


def _library(library: Optional[PieceLibrary]) -> PieceLibrary:
    return DEFAULT_LIBRARY if library is None else library


def _piece_order(lib: PieceLibrary, piece_ids: Iterable[str]) -> List[int]:
    """Piece indices in caller order with duplicates dropped; unknown ids raise ``KeyError``."""
    seen = set()
    order: List[int] = []
    for idx in lib.indices_for(piece_ids):
        if idx not in seen:
            seen.add(idx)
            order.append(idx)
    return order


def _mask_of(order: Sequence[int]) -> int:
    mask = 0
    for idx in order:
        mask |= 1 << idx
    return mask


def _min_remaining_size(order: Sequence[int], sizes: Sequence[int], mask: int) -> int:
    smallest = 0
    for idx in order:
        if mask >> idx & 1:
            size = sizes[idx]
            if smallest == 0 or size < smallest:
                smallest = size
    # nothing left to place: no region can be "too small"
    return smallest or 1


def _new_stats() -> Dict[str, int]:
    return {"nodes": 0, "placements": 0, "pruned": 0, "max_depth": 0}


def _pack(board: Board, order: List[int], lib: PieceLibrary, stats: Dict[str, int]) -> Optional[List[Placement]]:
    """Fill ``board`` from its first empty cell onward, trying pieces in ``order``.

    Every candidate placement is anchored so that one of its cells covers the
    next empty cell in scan order; any placement that can legally fill that
    cell has such an anchor, so nothing is missed.  The board is restored on
    every return path.
    """
    ids = lib.ids
    sizes = lib.sizes
    orientations = lib.orientations
    solution: List[Placement] = []

    def _search(mask: int, depth: int) -> bool:
        stats["nodes"] += 1
        if depth > stats["max_depth"]:
            stats["max_depth"] = depth

        target = board.first_empty()
        if target is None:
            return True
        tc, tr = target

        for idx in order:
            if not mask >> idx & 1:
                continue
            pid = ids[idx]
            rest = mask & ~(1 << idx)
            for oi, shape in enumerate(orientations[idx]):
                for dc, dr in shape:
                    col = tc - dc
                    row = tr - dr
                    if not board.fits(shape, col, row):
                        continue
                    stats["placements"] += 1
                    board.place(pid, shape, col, row)
                    try:
                        if board.has_dead_island(_min_remaining_size(order, sizes, rest)):
                            stats["pruned"] += 1
                            continue
                        solution.append(Placement(pid, oi, col, row))
                        if _search(rest, depth + 1):
                            return True
                        solution.pop()
                    finally:
                        board.remove(pid, shape, col, row)
        return False

    if _search(_mask_of(order), 0):
        return solution
    return None


def solve(board: Board, piece_ids: Iterable[str], library: Optional[PieceLibrary] = None) -> Optional[List[Placement]]:
    """First solution that completes ``board`` with ``piece_ids``, or ``None``.

    Pieces are tried largest first to shrink the branching factor early.
    ``board`` is used as scratch space and is left exactly as it was passed in.
    """
    lib = _library(library)
    order = _piece_order(lib, piece_ids)
    order.sort(key=lambda idx: -lib.sizes[idx])
    stats = _new_stats()
    result = _pack(board, order, lib, stats)
    stats["solved"] = result is not None
    setattr(solve, "last_stats", stats)
    return result


def solve_with_order(
    board: Board,
    ordered_piece_ids: Sequence[str],
    library: Optional[PieceLibrary] = None,
) -> Optional[List[Placement]]:
    """Like :func:`solve` but walks pieces in the caller's order.

    Different orders reach different regions of the solution space, which is
    how the generator samples diverse reference solutions from seeds.
    """
    lib = _library(library)
    order = _piece_order(lib, ordered_piece_ids)
    stats = _new_stats()
    result = _pack(board, order, lib, stats)
    stats["solved"] = result is not None
    setattr(solve_with_order, "last_stats", stats)
    return result


def covers_exactly(board: Board, placements: Iterable[Placement], library: Optional[PieceLibrary] = None) -> bool:
    """True when ``placements`` fill every empty cell of ``board`` exactly once."""
    lib = _library(library)
    scratch = board.copy()
    for p in placements:
        try:
            shape = lib.shape_of(p.piece_id, p.orientation)
        except (KeyError, IndexError):
            return False
        if not scratch.fits(shape, p.col, p.row):
            return False
        scratch.place(p.piece_id, shape, p.col, p.row)
    return scratch.is_full()


__all__ = ["solve", "solve_with_order", "covers_exactly"]
