# solver/counter.py — capped solution counting for uniqueness checks
from __future__ import annotations

from typing import Iterable, Optional

from pieces import PieceLibrary
from solver.board import Board
from solver.packer import _library, _mask_of, _min_remaining_size, _new_stats, _piece_order


def count_solutions(
    board: Board,
    piece_ids: Iterable[str],
    max_count: int = 2,
    library: Optional[PieceLibrary] = None,
) -> int:
    """Number of ways to complete ``board`` with ``piece_ids``, capped at ``max_count``.

    Same traversal and island pruning as :func:`solver.packer.solve`, but it
    keeps backtracking after a full board instead of stopping.  Once the cap
    is reached every level unwinds immediately; the caller only needs to tell
    "exactly one" from "more than one".
    """
    lib = _library(library)
    order = _piece_order(lib, piece_ids)
    order.sort(key=lambda idx: -lib.sizes[idx])
    stats = _new_stats()
    setattr(count_solutions, "last_stats", stats)

    cap = int(max_count)
    if cap < 1:
        stats["count"] = 0
        return 0

    ids = lib.ids
    sizes = lib.sizes
    orientations = lib.orientations
    count = 0

    def _search(mask: int, depth: int) -> None:
        nonlocal count
        stats["nodes"] += 1
        if depth > stats["max_depth"]:
            stats["max_depth"] = depth

        target = board.first_empty()
        if target is None:
            count += 1
            return
        tc, tr = target

        for idx in order:
            if not mask >> idx & 1:
                continue
            pid = ids[idx]
            rest = mask & ~(1 << idx)
            for shape in orientations[idx]:
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
                        _search(rest, depth + 1)
                        if count >= cap:
                            return
                    finally:
                        board.remove(pid, shape, col, row)

    _search(_mask_of(order), 0)
    stats["count"] = count
    return count


__all__ = ["count_solutions"]
