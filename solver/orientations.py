# solver/orientations.py
from __future__ import annotations

from typing import Iterable, List, Tuple, Union

from models import Cell, Piece, Shape


def normalize(shape: Iterable[Cell]) -> Shape:
    """Translate to min col/row 0 and sort in reading order (row, then col)."""
    cells = [(int(c), int(r)) for c, r in shape]
    if not cells:
        return ()
    min_col = min(c for c, _ in cells)
    min_row = min(r for _, r in cells)
    return tuple(sorted(((c - min_col, r - min_row) for c, r in cells), key=lambda cr: (cr[1], cr[0])))


def rotate_cw(shape: Iterable[Cell]) -> Shape:
    cells = list(shape)
    if not cells:
        return ()
    max_row = max(r for _, r in cells)
    return normalize((max_row - r, c) for c, r in cells)


def reflect_h(shape: Iterable[Cell]) -> Shape:
    cells = list(shape)
    if not cells:
        return ()
    max_col = max(c for c, _ in cells)
    return normalize((max_col - c, r) for c, r in cells)


def shape_key(shape: Shape) -> Tuple[Cell, ...]:
    # normalized shapes are already sorted tuples
    return tuple(shape)


def generate_orientations(source: Union[Piece, Iterable[Cell]]) -> Tuple[Shape, ...]:
    """All geometrically distinct placements of a shape under rotation/reflection.

    The base orientation comes first, then its remaining rotations, then the
    mirrored family.  The order is stable so searches are reproducible.
    """
    base = source.shape if isinstance(source, Piece) else source
    start = normalize(base)
    if not start:
        return ()

    seen = set()
    out: List[Shape] = []
    for current in (start, reflect_h(start)):
        for _ in range(4):
            key = shape_key(current)
            if key not in seen:
                seen.add(key)
                out.append(current)
            current = rotate_cw(current)
    return tuple(out)


__all__ = ["normalize", "rotate_cw", "reflect_h", "shape_key", "generate_orientations"]
