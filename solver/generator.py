# solver/generator.py — author puzzles whose remainder has exactly one solution
from __future__ import annotations

import time
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, TypeVar, Union

from config import CFG
from models import Placement, PuzzleDescriptor, Tier, fingerprint
from pieces import DEFAULT_LIBRARY, PieceLibrary
from solver.board import Board
from solver.counter import count_solutions
from solver.packer import solve, solve_with_order

T = TypeVar("T")

TIERS: Dict[int, Tier] = {
    1: Tier(1, 3, "Starter"),
    2: Tier(2, 4, "Easy"),
    3: Tier(3, 5, "Medium"),
    4: Tier(4, 6, "Hard"),
    5: Tier(5, 7, "Expert"),
}

_LCG_MUL = 1664525
_LCG_INC = 1013904223
_U32 = 0xFFFFFFFF

# Below 2 every solvable board would count as unique.
_MIN_UNIQUE_CAP = 2


class SilentReport:
    """Reporting hooks the generator calls; the default does nothing.

    Callers that want live progress pass an object with the same methods
    (see ``progress.GeneratorReport``).
    """

    def phase(self, text, total=None):
        pass

    def attempt(self, attempt, budget):
        pass

    def references(self, n):
        pass

    def log(self, event, **fields):
        pass


_SILENT = SilentReport()


# ---------- seeded randomness ----------

def lcg_stream(seed: int) -> Iterator[float]:
    """Reproducible floats in [0, 1] from a 32-bit linear congruential generator."""
    s = int(seed) & _U32
    while True:
        s = (s * _LCG_MUL + _LCG_INC) & _U32
        yield s / _U32


def seeded_shuffle(items: Sequence[T], rng: Union[int, Iterator[float]]) -> List[T]:
    """Fisher–Yates shuffle driven by :func:`lcg_stream`.

    ``rng`` is either a seed or an already-running stream; passing a stream
    lets successive shuffles continue the same sequence.
    """
    stream = lcg_stream(rng) if isinstance(rng, int) else rng
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        # the generator can emit exactly 1.0; clamp so j stays in range
        j = min(int(next(stream) * (i + 1)), i)
        out[i], out[j] = out[j], out[i]
    return out


def tier_seed(level: int) -> int:
    return (level * 7919 + level * 104729) & _U32


def _derive_seed(seed: Optional[int], index: int) -> int:
    base = 0 if seed is None else int(seed)
    return (base * 31 + index * 104729 + 1) & _U32


def resolve_tier(tier: Union[int, Tier]) -> Tier:
    if isinstance(tier, Tier):
        return tier
    try:
        return TIERS[int(tier)]
    except (KeyError, TypeError, ValueError):
        raise KeyError(f"Unknown difficulty tier {tier!r} (expected one of {sorted(TIERS)})") from None


# ---------- reference solutions ----------

def reference_solution(seed: Optional[int] = None, library: Optional[PieceLibrary] = None) -> Optional[List[Placement]]:
    """A full-board solution; ``seed`` picks the piece order, ``None`` means largest-first."""
    lib = DEFAULT_LIBRARY if library is None else library
    board = Board(lib.rows, lib.cols)
    if seed is None:
        return solve(board, lib.ids, lib)
    return solve_with_order(board, seeded_shuffle(lib.ids, seed), lib)


def reference_solutions(seeds: Iterable[Optional[int]], library: Optional[PieceLibrary] = None) -> List[List[Placement]]:
    """Distinct full-board solutions, one attempt per seed, duplicates dropped."""
    seen = set()
    out: List[List[Placement]] = []
    for seed in seeds:
        sol = reference_solution(seed, library)
        if sol is None:
            continue
        fp = fingerprint(sol)
        if fp in seen:
            continue
        seen.add(fp)
        out.append(sol)
    return out


# ---------- single puzzle ----------

def _uniqueness_confirmed(board: Board, piece_ids: List[str], lib: PieceLibrary) -> bool:
    from solver.cp_sat import count_solutions_cp_sat  # ortools is only needed here

    count = count_solutions_cp_sat(board, piece_ids, _MIN_UNIQUE_CAP, lib)
    meta = getattr(count_solutions_cp_sat, "last_meta", {}) or {}
    return count == 1 and bool(meta.get("complete"))


def generate_puzzle(
    tier: Union[int, Tier],
    *,
    seed: Optional[int] = None,
    library: Optional[PieceLibrary] = None,
    reference: Optional[Sequence[Placement]] = None,
    max_attempts: Optional[int] = None,
    report: Optional[SilentReport] = None,
) -> Optional[PuzzleDescriptor]:
    """Lock part of a reference solution so the rest can be completed exactly one way.

    Returns ``None`` when no reference solution exists or the attempt budget
    runs out; ``generate_puzzle.last_meta["reason"]`` says which.  ``report``
    receives phase, attempt and log events; by default nothing is reported.
    """
    report = _SILENT if report is None else report
    t = resolve_tier(tier)
    lib = DEFAULT_LIBRARY if library is None else library
    total = len(lib)
    if not 0 < t.player_pieces < total:
        raise ValueError(f"Tier {t.level} leaves {t.player_pieces} of {total} pieces to the player")
    budget = CFG.MAX_ATTEMPTS if max_attempts is None else int(max_attempts)
    lock_count = total - t.player_pieces
    t0 = time.time()
    meta: Dict[str, object] = {"tier": t.level, "seed": seed, "attempts": 0, "rejections": {}}
    setattr(generate_puzzle, "last_meta", meta)

    def _finish(result: Optional[PuzzleDescriptor], reason: Optional[str]) -> Optional[PuzzleDescriptor]:
        meta["reason"] = reason
        meta["elapsed"] = round(time.time() - t0, 3)
        return result

    report.phase(f"Tier {t.level} ({t.name})")
    report.log("Generation started", tier=t.level, seed=seed, locked=lock_count, budget=budget)

    solution = list(reference) if reference is not None else reference_solution(seed, lib)
    if not solution:
        report.log("No reference solution", tier=t.level, seed=seed)
        return _finish(None, "no_reference_solution")

    stream = lcg_stream(tier_seed(t.level) ^ (0 if seed is None else int(seed) & _U32))
    rejections: Dict[object, int] = meta["rejections"]  # type: ignore[assignment]
    cap = max(_MIN_UNIQUE_CAP, CFG.UNIQUE_CAP)

    for attempt in range(1, budget + 1):
        meta["attempts"] = attempt
        report.attempt(attempt, budget)

        shuffled = seeded_shuffle(solution, stream)
        locked = shuffled[:lock_count]
        player_ids = [p.piece_id for p in shuffled[lock_count:]]

        board = Board.from_placements(lib.rows, lib.cols, locked, lib)
        count: object = count_solutions(board, player_ids, cap, lib)
        if count == 1 and CFG.VERIFY_WITH_CP_SAT and not _uniqueness_confirmed(board, player_ids, lib):
            count = "cp_sat"
        if count != 1:
            rejections[count] = rejections.get(count, 0) + 1
            report.log("Attempt rejected", tier=t.level, attempt=attempt, count=count)
            continue

        report.log(
            "Puzzle accepted",
            tier=t.level,
            seed=seed,
            attempt=attempt,
            player=",".join(player_ids),
        )
        return _finish(
            PuzzleDescriptor(
                tier=t.level,
                name=t.name,
                locked=tuple(locked),
                player_piece_ids=tuple(player_ids),
                solution=tuple(solution),
                seed=seed,
                attempts=attempt,
            ),
            None,
        )

    report.log("Generation exhausted", tier=t.level, seed=seed, attempts=budget, rejections=rejections)
    return _finish(None, "generation_exhausted")


# ---------- puzzle set ----------

def generate_puzzle_set(
    levels: Optional[Iterable[int]] = None,
    *,
    seed: Optional[int] = None,
    library: Optional[PieceLibrary] = None,
    max_references: Optional[int] = None,
    max_attempts: Optional[int] = None,
    report: Optional[SilentReport] = None,
) -> List[PuzzleDescriptor]:
    """One puzzle per tier, moving to a fresh reference solution when a tier is exhausted."""
    report = _SILENT if report is None else report
    lib = DEFAULT_LIBRARY if library is None else library
    wanted = [resolve_tier(level) for level in (sorted(TIERS) if levels is None else levels)]
    ref_budget = CFG.MAX_REFERENCES if max_references is None else int(max_references)

    references: List[tuple] = []  # (seed, solution)
    seen = set()
    next_index = 0

    def _reference(i: int):
        nonlocal next_index
        while len(references) <= i and next_index < ref_budget:
            ref_seed = seed if next_index == 0 else _derive_seed(seed, next_index)
            next_index += 1
            sol = reference_solution(ref_seed, lib)
            if sol is None:
                continue
            fp = fingerprint(sol)
            if fp in seen:
                report.log("Duplicate reference skipped", seed=ref_seed)
                continue
            seen.add(fp)
            references.append((ref_seed, sol))
            report.references(len(references))
            report.log("Reference solution", seed=ref_seed, placements=len(sol))
        return references[i] if i < len(references) else None

    out: List[PuzzleDescriptor] = []
    failed: List[int] = []
    for n, t in enumerate(wanted, 1):
        report.phase(f"Tier {t.level} ({t.name})", total=len(wanted))
        report.log("Puzzle set tier", tier=t.level, index=n)
        puzzle = None
        i = 0
        while puzzle is None:
            ref = _reference(i)
            if ref is None:
                break
            ref_seed, sol = ref
            puzzle = generate_puzzle(
                t, seed=ref_seed, library=lib, reference=sol,
                max_attempts=max_attempts, report=report,
            )
            i += 1
        if puzzle is None:
            failed.append(t.level)
        else:
            out.append(puzzle)

    setattr(generate_puzzle_set, "last_meta", {
        "references": len(references),
        "failed": failed,
    })
    return out


__all__ = [
    "TIERS",
    "SilentReport",
    "lcg_stream",
    "seeded_shuffle",
    "tier_seed",
    "resolve_tier",
    "reference_solution",
    "reference_solutions",
    "generate_puzzle",
    "generate_puzzle_set",
]
