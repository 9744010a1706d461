from __future__ import annotations

import math
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Protocol, Tuple

from pygame.math import Vector2

from .errors import InvalidConfiguration

if TYPE_CHECKING:
    from .agent import Agent


class SpatialIndex(Protocol):
    def rebuild(self, agents: Iterable["Agent"]) -> None: ...

    def clear(self) -> None: ...

    def query(self, point: Vector2, radius: float, exclude_id: Optional[int] = None) -> List["Agent"]: ...


class BruteForceIndex:
    """Linear scan over the last inserted snapshot."""

    def __init__(self) -> None:
        self._agents: List["Agent"] = []

    def __len__(self) -> int:
        return len(self._agents)

    def rebuild(self, agents: Iterable["Agent"]) -> None:
        self._agents = list(agents)

    def clear(self) -> None:
        self._agents.clear()

    def query(self, point: Vector2, radius: float, exclude_id: Optional[int] = None) -> List["Agent"]:
        if radius < 0:
            return []
        radius_sq = radius * radius
        pos_x = point.x
        pos_y = point.y
        found: List["Agent"] = []
        for agent in self._agents:
            if exclude_id is not None and agent.id == exclude_id:
                continue
            offset_x = agent.position.x - pos_x
            offset_y = agent.position.y - pos_y
            if offset_x * offset_x + offset_y * offset_y <= radius_sq:
                found.append(agent)
        return found


class SpatialGrid:
    def __init__(self, cell_size: float) -> None:
        if not cell_size > 0 or not math.isfinite(cell_size):
            raise InvalidConfiguration(f"cell_size must be a positive number, got {cell_size!r}")
        self._cell_size = cell_size
        self._cells: Dict[Tuple[int, int], List["Agent"]] = {}
        self._active_keys: List[Tuple[int, int]] = []
        self._count = 0

    @property
    def cell_size(self) -> float:
        return self._cell_size

    def __len__(self) -> int:
        return self._count

    def clear(self) -> None:
        for key in self._active_keys:
            bucket = self._cells.get(key)
            if bucket:
                bucket.clear()
        self._active_keys.clear()
        self._count = 0

    def insert(self, agent: "Agent") -> None:
        key = self.cell_key(agent.position)
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
            self._active_keys.append(key)
        elif not bucket:
            # Bucket survived a clear(); mark it active again.
            self._active_keys.append(key)
        bucket.append(agent)
        self._count += 1

    def rebuild(self, agents: Iterable["Agent"]) -> None:
        self.clear()
        for agent in agents:
            self.insert(agent)

    def occupancy(self) -> Dict[Tuple[int, int], int]:
        return {key: len(self._cells[key]) for key in self._active_keys}

    def query(self, point: Vector2, radius: float, exclude_id: Optional[int] = None) -> List["Agent"]:
        if radius < 0:
            return []
        radius_sq = radius * radius
        pos_x = point.x
        pos_y = point.y
        found: List["Agent"] = []
        append = found.append

        for bucket in self._candidate_buckets(point, radius):
            for agent in bucket:
                if exclude_id is not None and agent.id == exclude_id:
                    continue
                pos = agent.position
                offset_x = pos.x - pos_x
                offset_y = pos.y - pos_y
                if offset_x * offset_x + offset_y * offset_y <= radius_sq:
                    append(agent)
        return found

    def _candidate_buckets(self, point: Vector2, radius: float) -> Iterable[List["Agent"]]:
        cells = self._cells
        if not (math.isfinite(radius) and math.isfinite(point.x) and math.isfinite(point.y)):
            return [cells[key] for key in self._active_keys]
        cell_range = int(math.ceil(radius / self._cell_size))
        span = 2 * cell_range + 1
        if span * span >= len(self._active_keys):
            # Wide queries touch fewer buckets by walking the occupied ones.
            return [cells[key] for key in self._active_keys]
        base_x, base_y = self.cell_key(point)
        buckets = []
        for dx in range(-cell_range, cell_range + 1):
            for dy in range(-cell_range, cell_range + 1):
                bucket = cells.get((base_x + dx, base_y + dy))
                if bucket:
                    buckets.append(bucket)
        return buckets

    def cell_key(self, position: Vector2) -> Tuple[int, int]:
        return (int(math.floor(position.x / self._cell_size)), int(math.floor(position.y / self._cell_size)))


def create_index(kind: str, cell_size: float) -> SpatialIndex:
    mode = kind.lower().strip()
    if mode == "grid":
        return SpatialGrid(cell_size)
    if mode in {"brute_force", "naive"}:
        return BruteForceIndex()
    raise InvalidConfiguration(f"Unknown spatial index: {kind}")
