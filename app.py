# app.py — JSON surface over the packer and puzzle generator
from __future__ import annotations
import time
from typing import Any, Dict, List, Optional, Tuple

from flask import Flask, request, jsonify, url_for

from config import CFG
from models import placements_from_payload
from pieces import DEFAULT_LIBRARY, PieceLibrary, parse_piece_library
from solver.board import Board
from solver.counter import count_solutions
from solver.generator import TIERS
from solver.isolate import run_generate_isolated
from solver.packer import solve, solve_with_order

from progress import (
    reset as progress_reset,
    as_json as progress_json,
    start_timer as progress_start,
    set_status, set_phase, set_phase_total, set_attempt,
    set_elapsed, set_progress_pct, set_done, set_result_url,
)

LAST_RESULT: Dict[str, Any] = {
    "ok": False,
    "reason": "nothing generated yet",
    "puzzle": None,
    "elapsed_str": "0s",
}

app = Flask(__name__)


class BadRequest(ValueError):
    pass


@app.after_request
def _no_cache_progress(resp):
    if request.path == "/progress3":
        resp.headers["Cache-Control"] = "no-store, max-age=0"
        resp.headers["Pragma"] = "no-cache"
        resp.headers["Expires"] = "0"
    return resp


@app.errorhandler(BadRequest)
def _bad_request(exc):
    return jsonify({"ok": False, "reason": str(exc)}), 400


def _fmt_elapsed(seconds: float) -> str:
    if seconds < 1:
        return "0s"
    m, s = divmod(int(seconds), 60)
    if m == 0:
        return f"{s}s"
    h, m = divmod(m, 60)
    if h == 0:
        return f"{m}m {s}s"
    return f"{h}h {m}m {s}s"


def _merge_like_mapping() -> Dict[str, Any]:
    """JSON body first, then form fields and query args that the body lacks."""
    merged: Dict[str, Any] = {}
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        merged.update(payload)
    for k, v in request.form.items():
        merged.setdefault(k, v)
    for k, v in request.args.items():
        merged.setdefault(k, v)
    return merged


def _optional_int(value: Any, name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"{name} must be an integer, got {value!r}") from None


def _library_from(like: Dict[str, Any]) -> PieceLibrary:
    raw = like.get("library")
    if raw is None:
        return DEFAULT_LIBRARY
    lib, err = parse_piece_library(raw)
    if err:
        raise BadRequest(f"Bad piece library: {err}")
    return lib


def _board_and_pieces(like: Dict[str, Any]) -> Tuple[Board, List[str], PieceLibrary]:
    lib = _library_from(like)
    try:
        locked = placements_from_payload(like.get("locked"))
        board = Board.from_placements(lib.rows, lib.cols, locked, lib)
    except (TypeError, ValueError, KeyError) as exc:
        raise BadRequest(f"Bad locked placements: {exc}") from None

    raw_ids = like.get("piece_ids")
    if raw_ids is None:
        used = {p.piece_id for p in locked}
        piece_ids = [pid for pid in lib.ids if pid not in used]
    elif isinstance(raw_ids, (list, tuple)):
        piece_ids = [str(pid) for pid in raw_ids]
    else:
        raise BadRequest("piece_ids must be a list")
    unknown = [pid for pid in piece_ids if pid not in lib.index]
    if unknown:
        raise BadRequest(f"Unknown piece ids: {', '.join(unknown)}")
    clash = sorted({p.piece_id for p in locked} & set(piece_ids))
    if clash:
        raise BadRequest(f"Pieces are both locked and free: {', '.join(clash)}")
    return board, piece_ids, lib


@app.route("/")
def index():
    info = DEFAULT_LIBRARY.describe()
    info["tiers"] = [
        {"level": t.level, "name": t.name, "player_pieces": t.player_pieces}
        for t in TIERS.values()
    ]
    return jsonify(info)


@app.route("/puzzle/latest")
def puzzle_latest():
    return jsonify(LAST_RESULT)


def _finalize_generator_progress(ok_flag: bool, reason_text: str) -> None:
    """Write the terminal generator status without clobbering failure states."""

    set_status("Solved" if ok_flag else "Error")
    set_done(ok_flag, reason=reason_text)


@app.route("/generate", methods=["POST"])
def generate():
    like = _merge_like_mapping()
    level = _optional_int(like.get("tier"), "tier")
    if level is None or level not in TIERS:
        raise BadRequest(f"tier must be one of {sorted(TIERS)}")
    seed = _optional_int(like.get("seed"), "seed")
    if seed is None:
        seed = CFG.DEFAULT_SEED

    progress_reset()
    progress_start()
    set_status("Generating")
    set_phase(f"Tier {level} ({TIERS[level].name})")
    set_phase_total(1)
    set_attempt("")
    set_progress_pct(0)

    t0 = time.time()
    puzzle, reason, crash_note = run_generate_isolated(level, seed, CFG.GENERATE_SECONDS)
    elapsed = time.time() - t0
    set_elapsed(elapsed)

    ok_flag = puzzle is not None
    reason_text = "Unique puzzle found" if ok_flag else (reason or "generation_exhausted")
    if crash_note:
        reason_text = f"{reason_text} ({crash_note})"
    _finalize_generator_progress(ok_flag, reason_text)

    LAST_RESULT.update({
        "ok": ok_flag,
        "reason": None if ok_flag else reason_text,
        "puzzle": puzzle.to_dict() if puzzle is not None else None,
        "elapsed_str": _fmt_elapsed(elapsed),
    })
    set_result_url(url_for("puzzle_latest"))
    return jsonify(LAST_RESULT)


@app.route("/solve", methods=["POST"])
def solve_route():
    like = _merge_like_mapping()
    board, piece_ids, lib = _board_and_pieces(like)
    if like.get("order"):
        placements = solve_with_order(board, piece_ids, lib)
    else:
        placements = solve(board, piece_ids, lib)
    return jsonify({
        "ok": placements is not None,
        "placements": [p.to_dict() for p in placements or []],
    })


@app.route("/count", methods=["POST"])
def count_route():
    like = _merge_like_mapping()
    board, piece_ids, lib = _board_and_pieces(like)
    max_count = _optional_int(like.get("max_count"), "max_count")
    if max_count is None:
        max_count = CFG.UNIQUE_CAP
    max_count = max(1, min(max_count, CFG.COUNT_LIMIT))
    return jsonify({"count": count_solutions(board, piece_ids, max_count, lib), "max_count": max_count})


@app.route("/progress3")
def progress3():
    return jsonify(progress_json())


if __name__ == "__main__":
    app.run(debug=False)
