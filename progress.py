# progress.py — run state shared between the web process and the generator worker
from __future__ import annotations

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional

PROGRESS_LOCK = threading.Lock()

_LOG_DIR = Path(__file__).resolve().parent / "logs"


def _state_file_path() -> Path:
    configured = os.environ.get("PROGRESS_STATE_FILE")
    return Path(configured) if configured else _LOG_DIR / "progress_state.json"


STATE_FILE = _state_file_path()
_LAST_STATE_MTIME: float = 0.0


def _init_logger() -> logging.Logger:
    logger = logging.getLogger("solver.attempt_log")
    if logger.handlers:
        return logger
    try:
        _LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(_LOG_DIR / "solver_attempts.log", encoding="utf-8")
    except OSError:
        # no writable log directory: run without the attempt log
        return logger
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


ATTEMPT_LOGGER = _init_logger()


def log_attempt_detail(event: str, **fields: Any) -> None:
    """Write ``event | k=v ...`` to the attempt log; empty fields are skipped."""
    if not ATTEMPT_LOGGER.handlers:
        return
    extras = " ".join(f"{k}={v}" for k, v in fields.items() if v is not None and v != "")
    try:
        if extras:
            ATTEMPT_LOGGER.info("%s | %s", event, extras)
        else:
            ATTEMPT_LOGGER.info("%s", event)
    except Exception:
        # a broken log file must not stop generation
        pass


_IDLE: Dict[str, Any] = {
    "status": "Idle",          # Idle | Generating | Solved | Error
    "phase": "",               # e.g. "Tier 2 (Easy)"
    "phase_total": "",         # tiers in this run
    "attempt": "",             # e.g. "7/100"
    "references": 0,           # distinct reference solutions used
    "percent": 0.0,
    "elapsed_start": None,
    "elapsed": 0.0,
    "message": "",             # terminal reason from set_done
    "done": False,
    "ok": None,
    "result_url": "",
}

# Single source of truth for /progress3
PROGRESS: Dict[str, Any] = dict(_IDLE, run_id=0)


# ---------- persistence ----------

def _persist_locked() -> None:
    global _LAST_STATE_MTIME
    tmp = STATE_FILE.with_name(STATE_FILE.name + ".tmp")
    try:
        STATE_FILE.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(json.dumps(PROGRESS, separators=(",", ":")), encoding="utf-8")
        tmp.replace(STATE_FILE)
        _LAST_STATE_MTIME = STATE_FILE.stat().st_mtime
    except (OSError, TypeError, ValueError):
        # state stays in memory; only cross-process visibility is lost
        pass


def _reload_locked(force: bool = False) -> None:
    """Pick up state written by another process (the generator worker)."""
    global _LAST_STATE_MTIME
    try:
        mtime = STATE_FILE.stat().st_mtime
        if not force and mtime <= _LAST_STATE_MTIME:
            return
        data = json.loads(STATE_FILE.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return
    if isinstance(data, dict):
        PROGRESS.update((k, data[k]) for k in PROGRESS if k in data)
        _LAST_STATE_MTIME = mtime


def _touch_elapsed_locked() -> None:
    t0 = PROGRESS.get("elapsed_start")
    if t0 is not None:
        PROGRESS["elapsed"] = time.time() - float(t0)


def _update(**fields: Any) -> None:
    with PROGRESS_LOCK:
        PROGRESS.update(fields)
        _persist_locked()


def _as_float(v: Any) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return 0.0


# ---------- setters ----------

def reset() -> None:
    with PROGRESS_LOCK:
        try:
            run_id = int(PROGRESS.get("run_id", 0)) + 1
        except (TypeError, ValueError):
            run_id = 1
        PROGRESS.clear()
        PROGRESS.update(_IDLE, run_id=run_id)
        _persist_locked()
    log_attempt_detail("Progress reset", run_id=run_id)


def start_timer() -> None:
    _update(elapsed_start=time.time(), elapsed=0.0)


def set_status(v: Any) -> None:
    _update(status=str(v))


def set_phase(v: Any) -> None:
    text = "" if v is None else str(v)
    with PROGRESS_LOCK:
        changed = PROGRESS["phase"] != text
        PROGRESS["phase"] = text
        _persist_locked()
    if changed and text:
        log_attempt_detail("Phase started", phase=text)


def set_phase_total(v: Any) -> None:
    _update(phase_total="" if v is None else str(v))


def set_attempt(v: Any) -> None:
    _update(attempt="" if v is None else str(v))


def set_references(n: Any) -> None:
    _update(references=max(0, int(_as_float(n))))


def set_progress_pct(pct: Any) -> None:
    with PROGRESS_LOCK:
        PROGRESS["percent"] = max(0.0, min(100.0, _as_float(pct)))
        _touch_elapsed_locked()
        _persist_locked()


def set_elapsed(seconds: Any) -> None:
    _update(elapsed=max(0.0, _as_float(seconds)))


def set_result_url(url: Any) -> None:
    _update(result_url="" if url is None else str(url))


def set_done(ok: Any = None, *, reason: Any = None) -> None:
    """Mark the run complete.

    ``ok`` picks the final status; when omitted a run still sitting in
    ``Idle`` counts as solved and any other status is kept.
    """
    with PROGRESS_LOCK:
        _touch_elapsed_locked()
        if ok is None and PROGRESS.get("status") in ("", "Idle", None):
            ok = True
        if ok is not None:
            PROGRESS["ok"] = bool(ok)
            PROGRESS["status"] = "Solved" if ok else "Error"
        if reason is not None:
            PROGRESS["message"] = str(reason)
        PROGRESS["percent"] = 100.0
        PROGRESS["done"] = True
        _persist_locked()
        summary = dict(PROGRESS)
    log_attempt_detail(
        "Run finished",
        status=summary["status"],
        ok=summary["ok"],
        elapsed=f"{summary['elapsed']:.2f}s",
        references=summary["references"],
        message=summary["message"],
    )


class GeneratorReport:
    """Connects the generator's reporting hooks to this module's state."""

    def phase(self, text: str, total: Optional[int] = None) -> None:
        set_phase(text)
        if total is not None:
            set_phase_total(total)

    def attempt(self, attempt: int, budget: int) -> None:
        set_attempt(f"{attempt}/{budget}")
        set_progress_pct(100.0 * (attempt - 1) / max(1, budget))

    def references(self, n: int) -> None:
        set_references(n)

    def log(self, event: str, **fields: Any) -> None:
        log_attempt_detail(event, **fields)


# ---------- snapshots for pollers ----------

def _fmt_elapsed(seconds: float) -> str:
    m, s = divmod(int(max(0.0, seconds)), 60)
    if m == 0:
        return f"{s}s"
    h, m = divmod(m, 60)
    return f"{m}m {s}s" if h == 0 else f"{h}h {m}m"


def snapshot() -> Dict[str, Any]:
    with PROGRESS_LOCK:
        _reload_locked()
        _touch_elapsed_locked()
        snap = {k: v for k, v in PROGRESS.items() if k != "elapsed_start"}
    snap["elapsed_str"] = _fmt_elapsed(snap["elapsed"])
    return snap


def as_json() -> Dict[str, Any]:
    # /progress3
    return snapshot()


with PROGRESS_LOCK:
    _reload_locked(force=True)
