from __future__ import annotations

import logging
from typing import Sequence

from .agent import Agent
from .spatial_grid import SpatialIndex
from ..systems import steering
from ..utils.math2d import HEADING_EPSILON_SQ, clamp_length, heading_from_velocity

logger = logging.getLogger(__name__)


class FlockSimulation:
    """Advances a flock by one step in two phases.

    Phase one computes every fish's acceleration against the pre-step
    positions and velocities; phase two integrates each fish on its own.
    Because the first phase never writes shared state, the outcome does not
    depend on the order fish are visited.
    """

    def __init__(self, index: SpatialIndex):
        self._index = index

    def step(self, agents: Sequence[Agent], dt: float) -> int:
        snapshot = list(agents)
        self._index.rebuild(snapshot)

        neighbor_checks = 0
        for agent in snapshot:
            neighbors = self._index.query(agent.position, agent.params.neighborhood_radius, exclude_id=agent.id)
            neighbor_checks += len(neighbors)
            agent.acceleration = steering.compute_acceleration(agent, neighbors)

        for agent in snapshot:
            self.integrate(agent, dt)

        logger.debug("stepped %d fish, %d neighbour pairs", len(snapshot), neighbor_checks)
        return neighbor_checks

    @staticmethod
    def integrate(agent: Agent, dt: float) -> None:
        velocity = clamp_length(agent.velocity + agent.acceleration, agent.params.max_speed)
        agent.velocity.update(velocity.x, velocity.y)
        agent.position.update(
            agent.position.x + velocity.x * dt,
            agent.position.y + velocity.y * dt,
        )
        if velocity.length_squared() > HEADING_EPSILON_SQ:
            agent.heading = heading_from_velocity(velocity)
