from __future__ import annotations

import logging
import math
from time import perf_counter
from typing import Dict, List, Optional, Sequence, Tuple, Union

from pygame.math import Vector2

from .agent import Agent, AgentState
from .config import SimulationConfig, SteeringParameters
from .errors import InvalidConfiguration
from .rng import DeterministicRng
from .simulation import FlockSimulation
from .spatial_grid import create_index
from ..systems import metrics as metrics_system
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotWorld
from ..utils.math2d import heading_from_velocity

logger = logging.getLogger(__name__)

PointLike = Union[Vector2, Tuple[float, float], Sequence[float]]

# Initial speed is drawn from this fraction range of max_speed.
_SPAWN_SPEED_RANGE = (0.5, 1.0)


class Environment:
    """The fish tank: owns the live fish, the bounds and the tick loop.

    Bounds are centred on the origin. Fish leaving one edge re-enter from the
    opposite edge. Spawning and removal are expected between ticks.
    """

    def __init__(self, config: SimulationConfig):
        if not config.time_step > 0:
            raise InvalidConfiguration(f"time_step must be positive, got {config.time_step!r}")
        self._config = config
        self._rng = DeterministicRng(config.seed)
        self._index = create_index(config.spatial_index, config.cell_size)
        self._simulation = FlockSimulation(self._index)
        self._agents: Dict[int, Agent] = {}
        self._width = 0.0
        self._height = 0.0
        self._params = config.steering
        self._next_id = 0
        self._tick = 0
        self._spawned_since_tick = 0
        self._removed_since_tick = 0
        self._metrics: TickMetrics | None = None
        self.configure(config.bounds, config.initial_population, config.steering)

    @property
    def agents(self) -> List[Agent]:
        return list(self._agents.values())

    @property
    def bounds(self) -> Tuple[float, float]:
        return (self._width, self._height)

    @property
    def tick_count(self) -> int:
        return self._tick

    def __len__(self) -> int:
        return len(self._agents)

    def get(self, agent_id: int) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def configure(self, bounds: Tuple[float, float], agent_count: int, params: SteeringParameters) -> None:
        width, height = (float(value) for value in bounds)
        if not (math.isfinite(width) and width > 0) or not (math.isfinite(height) and height > 0):
            raise InvalidConfiguration(f"bounds must be positive, got {bounds!r}")
        if not isinstance(params, SteeringParameters):
            raise InvalidConfiguration(f"params must be SteeringParameters, got {type(params).__name__}")
        self._check_count(agent_count)

        self._width = width
        self._height = height
        self._params = params
        self._agents.clear()
        self._index.clear()
        self._next_id = 0
        self._tick = 0
        self._metrics = None
        self.spawn(agent_count, params)
        self._spawned_since_tick = 0
        self._removed_since_tick = 0
        logger.info("configured tank %gx%g with %d fish", width, height, agent_count)

    def reset(self) -> None:
        self._rng.reset()
        self.configure(self._config.bounds, self._config.initial_population, self._config.steering)

    def spawn(self, count: int = 1, params: Optional[SteeringParameters] = None) -> List[int]:
        self._check_count(count)
        params = self._params if params is None else params
        low, high = _SPAWN_SPEED_RANGE
        spawned = []
        for _ in range(count):
            position = self._rng.next_point_in_rect(self._width, self._height)
            # One angle sets both the heading and the initial direction of travel.
            angle = self._rng.next_angle()
            speed = self._rng.next_range(low, high) * params.max_speed
            velocity = Vector2(math.cos(angle), math.sin(angle)) * speed
            spawned.append(self._add(position, velocity, params, angle))
        if count:
            logger.info("spawned %d fish (population %d)", count, len(self._agents))
        return spawned

    def add_agent(
        self,
        position: PointLike,
        velocity: PointLike = (0.0, 0.0),
        params: Optional[SteeringParameters] = None,
        heading: Optional[float] = None,
    ) -> int:
        """Place a fish at an exact position, e.g. for scripted scenes."""
        velocity_vec = Vector2(velocity)
        if heading is None:
            heading = heading_from_velocity(velocity_vec)
        return self._add(Vector2(position), velocity_vec, self._params if params is None else params, heading)

    def remove_near(self, point: PointLike, radius: float) -> int:
        self._index.rebuild(self._agents.values())
        center = Vector2(point)
        matches = self._index.query(center, radius)
        for agent in matches:
            del self._agents[agent.id]
        self._index.clear()
        if matches:
            self._removed_since_tick += len(matches)
            logger.info("removed %d fish within %g of (%.3f, %.3f)", len(matches), radius, center.x, center.y)
        return len(matches)

    def wrap(self, agent: Agent) -> None:
        half_w = self._width * 0.5
        half_h = self._height * 0.5
        x = agent.position.x
        y = agent.position.y

        if x < -half_w:
            x += self._width
        elif x > half_w:
            x -= self._width

        # The vertical axis checks both edges independently.
        if y > half_h:
            y -= self._height
        if y < -half_h:
            y += self._height

        agent.position.update(x, y)

    def tick(self, dt: Optional[float] = None) -> TickMetrics:
        start = perf_counter()
        step_dt = self._config.time_step if dt is None else dt
        agents = list(self._agents.values())

        neighbor_checks = self._simulation.step(agents, step_dt)
        for agent in agents:
            self.wrap(agent)

        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(
            self._tick,
            agents,
            self._spawned_since_tick,
            self._removed_since_tick,
            neighbor_checks,
            elapsed_ms,
        )
        self._spawned_since_tick = 0
        self._removed_since_tick = 0
        self._metrics = metrics
        self._tick += 1
        return metrics

    def agent_states(self) -> List[AgentState]:
        return [AgentState.of(agent) for agent in self._agents.values()]

    def snapshot(self, tick: Optional[int] = None) -> Snapshot:
        tick = self._tick if tick is None else tick
        agents = list(self._agents.values())
        metrics = self._metrics
        if metrics is None:
            metrics = metrics_system.create_metrics(
                tick, agents, self._spawned_since_tick, self._removed_since_tick, 0, 0.0
            )
        config = self._config
        metadata = SnapshotMetadata(
            sim_dt=config.time_step,
            tick_rate=1.0 / config.time_step,
            seed=config.seed,
            config_version=config.config_version,
            spatial_index=config.spatial_index,
        )
        return Snapshot(
            tick=tick,
            metrics=metrics,
            agents=[self._agent_snapshot(agent) for agent in agents],
            world=SnapshotWorld(width=self._width, height=self._height),
            metadata=metadata,
        )

    def _add(self, position: Vector2, velocity: Vector2, params: SteeringParameters, heading: float) -> int:
        agent = Agent(
            id=self._next_id,
            position=position,
            velocity=velocity,
            params=params,
            heading=heading,
        )
        self._agents[agent.id] = agent
        self._next_id += 1
        self._spawned_since_tick += 1
        return agent.id

    @staticmethod
    def _agent_snapshot(agent: Agent) -> Dict[str, float]:
        return {
            "id": agent.id,
            "x": agent.position.x,
            "y": agent.position.y,
            "vx": agent.velocity.x,
            "vy": agent.velocity.y,
            "speed": agent.velocity.length(),
            "heading": agent.heading,
        }

    @staticmethod
    def _check_count(count: int) -> None:
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise InvalidConfiguration(f"fish count must be a non-negative integer, got {count!r}")
