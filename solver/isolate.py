# solver/isolate.py — run puzzle generation in a child process with a timebox
import multiprocessing as mp
import time
import traceback
from typing import Optional, Tuple

from models import PuzzleDescriptor


# Worker must be top-level (picklable under spawn)
def _generate_worker(conn, level: int, seed: Optional[int], max_attempts: Optional[int]):
    try:
        from progress import GeneratorReport  # import inside child
        from solver.generator import generate_puzzle

        puzzle = generate_puzzle(level, seed=seed, max_attempts=max_attempts, report=GeneratorReport())
        meta = dict(getattr(generate_puzzle, "last_meta", {}) or {})
        payload = None if puzzle is None else puzzle.to_dict()
        conn.send(("ok", payload, meta.get("reason")))
    except MemoryError:
        conn.send(("err", None, "Child ran out of memory"))
    except Exception as e:
        conn.send(("exc", None, f"{type(e).__name__}: {e}\n{traceback.format_exc()}"))
    finally:
        conn.close()


def _terminate_process(proc, grace: float = 0.2) -> None:
    """Tear ``proc`` down within a few ``grace`` windows: join, terminate, then kill."""
    proc.join(timeout=grace)
    if not proc.is_alive():
        return
    proc.terminate()
    proc.join(timeout=grace)
    if not proc.is_alive():
        return
    proc.kill()
    proc.join(timeout=grace)


def run_generate_isolated(
    level: int,
    seed: Optional[int] = None,
    max_seconds: float = 15.0,
    *,
    max_attempts: Optional[int] = None,
) -> Tuple[Optional[PuzzleDescriptor], Optional[str], Optional[str]]:
    """
    Returns (puzzle_or_None, reason, crash_note).
    crash_note is non-empty only if the child crashed/was killed/timed out.
    """
    ctx = mp.get_context("spawn")
    parent, child = ctx.Pipe(duplex=False)
    proc = ctx.Process(target=_generate_worker, args=(child, int(level), seed, max_attempts))
    proc.daemon = True
    proc.start()
    child.close()

    # Allow a small grace window for process spin-up
    deadline = time.monotonic() + max(1.0, float(max_seconds) + 1.0)
    received = None
    timed_out = False
    try:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                timed_out = True
                break
            if parent.poll(min(0.1, remaining)):
                received = parent.recv()
                break
            if not proc.is_alive():
                if parent.poll(0):
                    received = parent.recv()
                break
    except (EOFError, BrokenPipeError):
        received = None
    finally:
        _terminate_process(proc)
        parent.close()

    if received is None:
        if timed_out:
            return None, "Stopped before puzzle (timebox)", "killed: timeout"
        return None, f"No result from child (exit {proc.exitcode})", "child crashed"

    tag, payload, reason = received
    if tag == "ok":
        if payload is None:
            return None, reason or "generation_exhausted", None
        return PuzzleDescriptor.from_dict(payload), None, None
    return None, reason, None


__all__ = ["run_generate_isolated"]
