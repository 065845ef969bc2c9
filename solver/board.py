# solver/board.py — grid buffer and the placement primitives the search uses
from __future__ import annotations

from collections import deque
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Tuple

from models import Cell, Placement, Shape


class Board:
    """``rows × cols`` grid stored flat in row-major order.

    A cell is ``None`` when empty, otherwise the id of the piece covering it.
    ``place``/``remove`` are caller-checked: the search always calls
    :meth:`fits` first, so they do not re-validate.
    """

    __slots__ = ("rows", "cols", "cells")

    def __init__(self, rows: int, cols: int):
        if rows <= 0 or cols <= 0:
            raise ValueError(f"Board must be positive, got {rows} × {cols}")
        self.rows = int(rows)
        self.cols = int(cols)
        self.cells: List[Optional[str]] = [None] * (self.rows * self.cols)

    @classmethod
    def from_placements(cls, rows: int, cols: int, placements: Iterable[Placement], library) -> "Board":
        board = cls(rows, cols)
        for p in placements:
            try:
                shape = library.shape_of(p.piece_id, p.orientation)
            except (KeyError, IndexError):
                raise ValueError(f"Unknown piece/orientation in {p.key()}") from None
            if not board.fits(shape, p.col, p.row):
                raise ValueError(f"Placement {p.key()} does not fit")
            board.place(p.piece_id, shape, p.col, p.row)
        return board

    # ---------- primitives ----------

    def get(self, col: int, row: int) -> Optional[str]:
        return self.cells[row * self.cols + col]

    def fits(self, shape: Shape, col: int, row: int) -> bool:
        cols = self.cols
        rows = self.rows
        cells = self.cells
        for dc, dr in shape:
            c = col + dc
            r = row + dr
            if c < 0 or r < 0 or c >= cols or r >= rows:
                return False
            if cells[r * cols + c] is not None:
                return False
        return True

    def place(self, piece_id: str, shape: Shape, col: int, row: int) -> None:
        cols = self.cols
        cells = self.cells
        for dc, dr in shape:
            idx = (row + dr) * cols + col + dc
            assert cells[idx] is None, f"cell {(col + dc, row + dr)} already holds {cells[idx]}"
            cells[idx] = piece_id

    def remove(self, piece_id: str, shape: Shape, col: int, row: int) -> None:
        cols = self.cols
        cells = self.cells
        for dc, dr in shape:
            idx = (row + dr) * cols + col + dc
            assert cells[idx] == piece_id, f"cell {(col + dc, row + dr)} is not held by {piece_id}"
            cells[idx] = None

    @contextmanager
    def placed(self, piece_id: str, shape: Shape, col: int, row: int) -> Iterator["Board"]:
        """Place for the duration of the block; removal is guaranteed."""
        self.place(piece_id, shape, col, row)
        try:
            yield self
        finally:
            self.remove(piece_id, shape, col, row)

    def first_empty(self) -> Optional[Cell]:
        try:
            idx = self.cells.index(None)
        except ValueError:
            return None
        row, col = divmod(idx, self.cols)
        return col, row

    def is_full(self) -> bool:
        return None not in self.cells

    def empty_count(self) -> int:
        return self.cells.count(None)

    # ---------- island analysis ----------

    def empty_regions(self) -> List[int]:
        """Sizes of the 4-connected empty regions, in scan order of their first cell."""
        return list(self._region_sizes())

    def has_dead_island(self, min_size: int) -> bool:
        """True when some empty region is too small for every remaining piece."""
        if min_size <= 1:
            return False
        return any(size < min_size for size in self._region_sizes())

    def _region_sizes(self) -> Iterator[int]:
        cols = self.cols
        rows = self.rows
        cells = self.cells
        visited = bytearray(len(cells))
        for start, owner in enumerate(cells):
            if owner is not None or visited[start]:
                continue
            visited[start] = 1
            queue = deque((start,))
            size = 0
            while queue:
                idx = queue.popleft()
                size += 1
                r, c = divmod(idx, cols)
                if c > 0:
                    nb = idx - 1
                    if cells[nb] is None and not visited[nb]:
                        visited[nb] = 1
                        queue.append(nb)
                if c + 1 < cols:
                    nb = idx + 1
                    if cells[nb] is None and not visited[nb]:
                        visited[nb] = 1
                        queue.append(nb)
                if r > 0:
                    nb = idx - cols
                    if cells[nb] is None and not visited[nb]:
                        visited[nb] = 1
                        queue.append(nb)
                if r + 1 < rows:
                    nb = idx + cols
                    if cells[nb] is None and not visited[nb]:
                        visited[nb] = 1
                        queue.append(nb)
            yield size

    # ---------- copies / views ----------

    def copy(self) -> "Board":
        other = Board(self.rows, self.cols)
        other.cells = list(self.cells)
        return other

    def snapshot(self) -> Tuple[Optional[str], ...]:
        return tuple(self.cells)

    def format(self, empty: str = ".") -> str:
        lines = []
        for r in range(self.rows):
            row = self.cells[r * self.cols:(r + 1) * self.cols]
            lines.append(" ".join(empty if v is None else str(v) for v in row))
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"Board({self.rows}x{self.cols}, empty={self.empty_count()})"


__all__ = ["Board"]
