from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

Cell = Tuple[int, int]  # (col, row)
Shape = Tuple[Cell, ...]


@dataclass(frozen=True)
class Piece:
    id: str
    name: str
    shape: Shape
    color: str = ""

    @property
    def size(self) -> int:
        return len(self.shape)


@dataclass(frozen=True)
class Placement:
    piece_id: str
    orientation: int
    col: int
    row: int

    def key(self) -> str:
        return f"{self.piece_id}@{self.col},{self.row}/{self.orientation}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "piece_id": self.piece_id,
            "orientation": self.orientation,
            "col": self.col,
            "row": self.row,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Placement":
        return cls(
            str(data["piece_id"]),
            int(data.get("orientation", 0)),
            int(data["col"]),
            int(data["row"]),
        )


@dataclass(frozen=True)
class Tier:
    level: int
    player_pieces: int
    name: str


@dataclass(frozen=True)
class PuzzleDescriptor:
    tier: int
    name: str
    locked: Tuple[Placement, ...]
    player_piece_ids: Tuple[str, ...]
    solution: Tuple[Placement, ...] = field(default_factory=tuple)
    seed: Optional[int] = None
    attempts: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier,
            "name": self.name,
            "locked": [p.to_dict() for p in self.locked],
            "player_piece_ids": list(self.player_piece_ids),
            "solution": [p.to_dict() for p in self.solution],
            "seed": self.seed,
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PuzzleDescriptor":
        seed = data.get("seed")
        return cls(
            tier=int(data["tier"]),
            name=str(data.get("name", "")),
            locked=tuple(Placement.from_dict(p) for p in data.get("locked", ())),
            player_piece_ids=tuple(str(p) for p in data.get("player_piece_ids", ())),
            solution=tuple(Placement.from_dict(p) for p in data.get("solution", ())),
            seed=None if seed is None else int(seed),
            attempts=int(data.get("attempts", 0)),
        )


def fingerprint(placements: Iterable[Placement]) -> Tuple[str, ...]:
    """Order-independent identity of a solution."""
    return tuple(sorted(p.key() for p in placements))


def placements_from_payload(items: Any) -> List[Placement]:
    if items is None:
        return []
    if not isinstance(items, (list, tuple)):
        raise TypeError("placements must be a list")
    out: List[Placement] = []
    for item in items:
        if isinstance(item, Placement):
            out.append(item)
        elif isinstance(item, dict):
            out.append(Placement.from_dict(item))
        elif isinstance(item, (list, tuple)) and len(item) == 4:
            pid, oi, col, row = item
            out.append(Placement(str(pid), int(oi), int(col), int(row)))
        else:
            raise ValueError(f"Not a placement: {item!r}")
    return out
