from __future__ import annotations

import math
from typing import Sequence

from ..core.agent import Agent
from ..types.metrics import TickMetrics


def flock_stats(agents: Sequence[Agent]) -> tuple[float, float, float]:
    """Average speed, top speed and polarization (0 = disordered, 1 = aligned)."""
    if not agents:
        return 0.0, 0.0, 0.0
    speed_sum = 0.0
    top_speed = 0.0
    heading_x = 0.0
    heading_y = 0.0
    moving = 0
    for agent in agents:
        vx = agent.velocity.x
        vy = agent.velocity.y
        speed = math.hypot(vx, vy)
        speed_sum += speed
        if speed > top_speed:
            top_speed = speed
        if speed > 0.0:
            heading_x += vx / speed
            heading_y += vy / speed
            moving += 1
    polarization = 0.0 if moving == 0 else math.hypot(heading_x, heading_y) / moving
    return speed_sum / len(agents), top_speed, polarization


def create_metrics(
    tick: int,
    agents: Sequence[Agent],
    spawned: int,
    removed: int,
    neighbor_checks: int,
    duration_ms: float,
) -> TickMetrics:
    average_speed, max_speed, polarization = flock_stats(agents)
    return TickMetrics(
        tick=tick,
        population=len(agents),
        spawned=spawned,
        removed=removed,
        neighbor_checks=neighbor_checks,
        average_speed=average_speed,
        max_speed=max_speed,
        polarization=polarization,
        tick_duration_ms=duration_ms,
    )
