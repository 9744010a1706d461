from __future__ import annotations

from typing import NamedTuple, Sequence

from pygame.math import Vector2

from ..core.agent import Agent
from ..utils.math2d import clamp_length, mean, safe_normalize


class SteeringForces(NamedTuple):
    alignment: Vector2
    cohesion: Vector2
    separation: Vector2


def steer(agent: Agent, desired: Vector2) -> Vector2:
    """Bounded force turning the current velocity toward ``desired``."""
    return clamp_length(desired - agent.velocity, agent.params.max_force)


def alignment(agent: Agent, neighbors: Sequence[Agent]) -> Vector2:
    if not neighbors:
        return Vector2()
    average = mean([other.velocity for other in neighbors])
    return steer(agent, safe_normalize(average) * agent.params.max_speed)


def cohesion(agent: Agent, neighbors: Sequence[Agent]) -> Vector2:
    if not neighbors:
        return Vector2()
    center = mean([other.position for other in neighbors])
    return steer(agent, safe_normalize(center - agent.position) * agent.params.max_speed)


def separation(agent: Agent, neighbors: Sequence[Agent]) -> Vector2:
    radius_sq = agent.params.separation_radius * agent.params.separation_radius
    pos_x = agent.position.x
    pos_y = agent.position.y
    away_x = 0.0
    away_y = 0.0
    count = 0
    for other in neighbors:
        diff_x = pos_x - other.position.x
        diff_y = pos_y - other.position.y
        dist_sq = diff_x * diff_x + diff_y * diff_y
        # Coincident fish have no direction to push apart along.
        if dist_sq <= 0.0 or dist_sq > radius_sq:
            continue
        push = safe_normalize(Vector2(diff_x, diff_y))
        away_x += push.x
        away_y += push.y
        count += 1

    if count == 0:
        return Vector2()
    average = Vector2(away_x / count, away_y / count)
    return steer(agent, safe_normalize(average) * agent.params.max_speed)


def steering_forces(agent: Agent, neighbors: Sequence[Agent]) -> SteeringForces:
    return SteeringForces(
        alignment=alignment(agent, neighbors),
        cohesion=cohesion(agent, neighbors),
        separation=separation(agent, neighbors),
    )


def compute_acceleration(agent: Agent, neighbors: Sequence[Agent]) -> Vector2:
    params = agent.params
    forces = steering_forces(agent, neighbors)
    return (
        forces.alignment * params.alignment_weight
        + forces.cohesion * params.cohesion_weight
        + forces.separation * params.separation_weight
    )
