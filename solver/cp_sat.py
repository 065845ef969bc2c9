# solver/cp_sat.py — the same exact-cover problem stated as a CP-SAT model
from __future__ import annotations

import time
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from ortools.sat.python import cp_model as _cp

from config import CFG
from models import Placement, Shape
from pieces import DEFAULT_LIBRARY, PieceLibrary
from solver.board import Board

Option = Tuple[int, int, int, Shape]  # (orientation, col, row, shape)


def build_options(board: Board, piece_ids: Sequence[str], lib: PieceLibrary) -> List[List[Option]]:
    """Every in-bounds, non-overlapping placement of each piece on ``board``."""
    options: List[List[Option]] = []
    for pid in piece_ids:
        per_piece: List[Option] = []
        for oi, shape in enumerate(lib.orientations_of(pid)):
            max_c = max(c for c, _ in shape)
            max_r = max(r for _, r in shape)
            for row in range(board.rows - max_r):
                for col in range(board.cols - max_c):
                    if board.fits(shape, col, row):
                        per_piece.append((oi, col, row, shape))
        options.append(per_piece)
    return options


def _build_model(board: Board, piece_ids: Sequence[str], lib: PieceLibrary):
    """Return (model, vars, options, reason); ``model`` is ``None`` when trivially infeasible."""
    need = sum(lib.piece(pid).size for pid in piece_ids)
    empty = board.empty_count()
    if need != empty:
        return None, [], [], f"Cell count mismatch: pieces cover {need}, board has {empty} empty"

    options = build_options(board, piece_ids, lib)
    m = _cp.CpModel()
    p = [[m.new_bool_var(f"p_{i}_{k}") for k in range(len(options[i]))] for i in range(len(piece_ids))]

    for i, pid in enumerate(piece_ids):
        if not p[i]:
            return None, [], [], f"No placements remain for piece {pid}"
        m.add_exactly_one(p[i])

    cell_to_vars: Dict[Tuple[int, int], List[_cp.IntVar]] = defaultdict(list)
    for i in range(len(piece_ids)):
        for k, (_oi, col, row, shape) in enumerate(options[i]):
            for dc, dr in shape:
                cell_to_vars[(col + dc, row + dr)].append(p[i][k])

    for row in range(board.rows):
        for col in range(board.cols):
            if board.get(col, row) is not None:
                continue
            vars_here = cell_to_vars.get((col, row))
            if not vars_here:
                return None, [], [], f"Coverage impossible (un-coverable cell {col},{row})"
            m.add_exactly_one(vars_here)

    return m, p, options, None


def _new_solver(max_seconds: float) -> _cp.CpSolver:
    solver = _cp.CpSolver()
    solver.parameters.max_time_in_seconds = max(0.1, float(max_seconds))
    solver.parameters.num_workers = 1
    return solver


def try_pack_exact_cover(
    board: Board,
    piece_ids: Sequence[str],
    library: Optional[PieceLibrary] = None,
    max_seconds: Optional[float] = None,
) -> Tuple[bool, List[Placement], Optional[str]]:
    """Solve with CP-SAT. Returns (ok, placements, reason).

    Unlike the backtracking packer every listed piece must be used, so the
    piece cells have to match the empty cells exactly.
    """
    lib = DEFAULT_LIBRARY if library is None else library
    ids = list(dict.fromkeys(piece_ids))
    lib.indices_for(ids)
    seconds = CFG.CP_SAT_SECONDS if max_seconds is None else float(max_seconds)
    t0 = time.time()

    def _finish(ok: bool, placed: List[Placement], reason: Optional[str]):
        setattr(try_pack_exact_cover, "last_meta", {
            "reason": reason,
            "elapsed": round(time.time() - t0, 3),
            "pieces": len(ids),
        })
        return ok, placed, reason

    if not ids:
        if board.is_full():
            return _finish(True, [], None)
        return _finish(False, [], "No pieces for a non-full board")

    m, p, options, reason = _build_model(board, ids, lib)
    if m is None:
        return _finish(False, [], reason)

    solver = _new_solver(seconds)
    status = solver.solve(m)
    if status in (_cp.OPTIMAL, _cp.FEASIBLE):
        placed: List[Placement] = []
        for i, pid in enumerate(ids):
            for k, var in enumerate(p[i]):
                if solver.boolean_value(var):
                    oi, col, row, _shape = options[i][k]
                    placed.append(Placement(pid, oi, col, row))
                    break
        return _finish(True, placed, None)
    if status == _cp.INFEASIBLE:
        return _finish(False, [], "Proven infeasible")
    return _finish(False, [], "Stopped before solution (timebox)")


class _CappedSolutionCounter(_cp.CpSolverSolutionCallback):
    def __init__(self, cap: int):
        super().__init__()
        self.cap = cap
        self.count = 0

    def on_solution_callback(self) -> None:
        self.count += 1
        if self.count >= self.cap:
            self.stop_search()


def count_solutions_cp_sat(
    board: Board,
    piece_ids: Sequence[str],
    max_count: int = 2,
    library: Optional[PieceLibrary] = None,
    max_seconds: Optional[float] = None,
) -> int:
    """Enumerate CP-SAT solutions up to ``max_count``.

    ``count_solutions_cp_sat.last_meta["complete"]`` is ``False`` when the
    timebox ran out before the search finished or hit the cap, in which case
    the returned count is only a lower bound.
    """
    lib = DEFAULT_LIBRARY if library is None else library
    ids = list(dict.fromkeys(piece_ids))
    lib.indices_for(ids)
    seconds = CFG.CP_SAT_SECONDS if max_seconds is None else float(max_seconds)
    cap = int(max_count)

    def _finish(count: int, complete: bool, reason: Optional[str] = None) -> int:
        setattr(count_solutions_cp_sat, "last_meta", {
            "count": count,
            "complete": complete,
            "reason": reason,
        })
        return count

    if cap < 1:
        return _finish(0, True)
    if not ids:
        return _finish(1 if board.is_full() else 0, True)

    m, _p, _options, reason = _build_model(board, ids, lib)
    if m is None:
        return _finish(0, True, reason)

    solver = _new_solver(seconds)
    solver.parameters.enumerate_all_solutions = True
    callback = _CappedSolutionCounter(cap)
    status = solver.solve(m, callback)
    complete = status in (_cp.OPTIMAL, _cp.INFEASIBLE) or callback.count >= cap
    return _finish(min(callback.count, cap), complete)


__all__ = ["build_options", "try_pack_exact_cover", "count_solutions_cp_sat"]
