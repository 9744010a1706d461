from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple

from pygame.math import Vector2

from .config import SteeringParameters


@dataclass(slots=True)
class Agent:
    id: int
    position: Vector2
    velocity: Vector2
    params: SteeringParameters
    acceleration: Vector2 = field(default_factory=Vector2)
    heading: float = 0.0

    @property
    def speed(self) -> float:
        return self.velocity.length()


class AgentState(NamedTuple):
    """Read-only view of one fish handed to renderers."""

    id: int
    position: tuple[float, float]
    velocity: tuple[float, float]
    heading: float

    @classmethod
    def of(cls, agent: Agent) -> "AgentState":
        return cls(
            id=agent.id,
            position=(agent.position.x, agent.position.y),
            velocity=(agent.velocity.x, agent.velocity.y),
            heading=agent.heading,
        )
