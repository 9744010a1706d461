from __future__ import annotations

import math

import pytest
from pygame.math import Vector2
from pytest import approx

from fishtank.sim.core.agent import AgentState
from fishtank.sim.core.config import SimulationConfig, SteeringParameters
from fishtank.sim.core.environment import Environment
from fishtank.sim.core.errors import InvalidConfiguration


def _empty_tank(width: float = 16.0, height: float = 9.0, **kwargs) -> Environment:
    return Environment(SimulationConfig(width=width, height=height, initial_population=0, **kwargs))


def test_configure_spawns_requested_population():
    env = Environment(SimulationConfig(initial_population=12))
    assert len(env) == 12
    assert sorted(fish.id for fish in env.agents) == list(range(12))
    assert env.bounds == (16.0, 9.0)


@pytest.mark.parametrize("bounds", [(0.0, 9.0), (16.0, -1.0), (-5.0, -5.0), (math.inf, 1.0)])
def test_non_positive_bounds_are_rejected(bounds):
    with pytest.raises(InvalidConfiguration):
        Environment(SimulationConfig(width=bounds[0], height=bounds[1]))


def test_reconfigure_replaces_population_and_bounds():
    env = Environment(SimulationConfig(initial_population=5))
    params = SteeringParameters(max_speed=3.0)

    env.configure((20.0, 10.0), 3, params)

    assert len(env) == 3
    assert env.bounds == (20.0, 10.0)
    assert all(fish.params is params for fish in env.agents)
    with pytest.raises(InvalidConfiguration):
        env.configure((20.0, 10.0), -1, params)


def test_spawned_fish_stay_within_bounds():
    env = _empty_tank(width=30.0, height=12.0)
    env.spawn(1000)

    assert len(env) == 1000
    for fish in env.agents:
        assert -15.0 <= fish.position.x <= 15.0
        assert -6.0 <= fish.position.y <= 6.0


def test_spawn_speed_and_heading_are_coupled():
    params = SteeringParameters(max_speed=2.0)
    env = _empty_tank(steering=params)
    ids = env.spawn(200)

    assert len(set(ids)) == 200
    for fish in env.agents:
        speed = fish.velocity.length()
        assert 0.5 * params.max_speed - 1e-9 <= speed <= params.max_speed + 1e-9
        assert 0.0 <= fish.heading < 2.0 * math.pi
        assert math.cos(fish.heading) * speed == approx(fish.velocity.x, abs=1e-9)
        assert math.sin(fish.heading) * speed == approx(fish.velocity.y, abs=1e-9)


def test_spawn_with_custom_params():
    env = _empty_tank()
    fast = SteeringParameters(max_speed=5.0)
    (fish_id,) = env.spawn(1, params=fast)

    assert env.get(fish_id).params is fast
    with pytest.raises(InvalidConfiguration):
        env.spawn(-2)


def test_remove_near_removes_single_match():
    env = _empty_tank()
    positions = [(0.0, 0.0), (1.0, 0.0), (-1.0, 2.0), (3.0, -3.0), (5.0, 4.0)]
    for position in positions:
        env.add_agent(position)

    removed = env.remove_near((0.0, 0.0), 0.1)

    assert removed == 1
    assert len(env) == 4
    assert all(fish.position != Vector2(0.0, 0.0) for fish in env.agents)


def test_remove_near_without_matches_returns_zero():
    env = _empty_tank()
    env.add_agent((4.0, 4.0))

    assert env.remove_near(Vector2(-4.0, -4.0), 1.0) == 0
    assert len(env) == 1


def test_remove_near_non_finite_point_removes_nothing():
    env = Environment(SimulationConfig(initial_population=50))

    assert env.remove_near((math.inf, 0.0), 1.0) == 0
    assert env.remove_near((math.nan, math.nan), 5.0) == 0
    assert len(env) == 50


def test_remove_near_clears_every_fish_in_radius():
    env = _empty_tank()
    for x in (0.0, 0.3, 0.6, 2.0):
        env.add_agent((x, 0.0))

    assert env.remove_near((0.0, 0.0), 0.6) == 3
    assert [fish.position.x for fish in env.agents] == [2.0]


def test_removed_ids_are_not_reused():
    env = _empty_tank()
    first = env.add_agent((0.0, 0.0))
    env.remove_near((0.0, 0.0), 0.0)
    second = env.add_agent((0.0, 0.0))

    assert second != first
    assert env.get(first) is None


@pytest.mark.parametrize(
    "start, expected",
    [
        ((5.2, 0.0), (-4.8, 0.0)),
        ((-5.2, 0.0), (4.8, 0.0)),
        ((0.0, 3.5), (0.0, -2.5)),
        ((0.0, -3.5), (0.0, 2.5)),
        ((5.0, 3.0), (5.0, 3.0)),
        ((-6.0, 4.0), (4.0, -2.0)),
    ],
)
def test_wrap_moves_fish_to_opposite_edge(start, expected):
    env = _empty_tank(width=10.0, height=6.0)
    fish = env.get(env.add_agent(start))

    env.wrap(fish)

    assert fish.position.x == approx(expected[0])
    assert fish.position.y == approx(expected[1])


def test_tick_wraps_every_fish():
    env = _empty_tank(width=10.0, height=6.0)
    fish_id = env.add_agent((4.95, 2.95), (1.0, 1.0))

    env.tick(0.1)

    fish = env.get(fish_id)
    assert fish.position.x == approx(4.95 + 0.1 * fish.velocity.x - 10.0)
    assert fish.position.y == approx(2.95 + 0.1 * fish.velocity.y - 6.0)


def test_positions_stay_inside_after_many_ticks():
    env = Environment(SimulationConfig(initial_population=60, width=10.0, height=6.0))
    for _ in range(200):
        env.tick(0.1)
        for fish in env.agents:
            assert -5.0 <= fish.position.x <= 5.0
            assert -3.0 <= fish.position.y <= 3.0


def test_tick_metrics_track_population_changes():
    env = _empty_tank()
    env.spawn(4)
    env.remove_near(env.agents[0].position, 0.0)

    metrics = env.tick()

    assert metrics.tick == 0
    assert metrics.population == len(env)
    assert metrics.spawned == 4
    assert metrics.removed >= 1
    follow_up = env.tick()
    assert follow_up.tick == 1
    assert follow_up.spawned == 0
    assert follow_up.removed == 0


def test_agent_states_are_read_only_views():
    env = _empty_tank()
    fish_id = env.add_agent((1.0, 2.0), (0.5, 0.0))

    states = env.agent_states()

    assert states == [AgentState(id=fish_id, position=(1.0, 2.0), velocity=(0.5, 0.0), heading=0.0)]
    env.tick(1.0)
    assert states[0].position == (1.0, 2.0)


def test_reset_restores_seeded_population():
    env = Environment(SimulationConfig(initial_population=8, seed=99))
    before = env.agent_states()
    for _ in range(5):
        env.tick()
    env.spawn(3)

    env.reset()

    assert env.agent_states() == before
    assert env.tick_count == 0


def test_snapshot_contains_metadata_and_fish():
    config = SimulationConfig(seed=7, time_step=0.5, width=42.0, height=21.0, initial_population=3)
    env = Environment(config)
    env.tick()

    snapshot = env.snapshot()

    assert snapshot.tick == 1
    assert snapshot.world.width == approx(42.0)
    assert snapshot.world.height == approx(21.0)
    assert snapshot.metadata.sim_dt == approx(0.5)
    assert snapshot.metadata.tick_rate == approx(2.0)
    assert snapshot.metadata.seed == 7
    assert snapshot.metrics.population == 3
    payload = snapshot.agents[0]
    for key in ["id", "x", "y", "vx", "vy", "speed", "heading"]:
        assert key in payload
    assert payload["speed"] == approx(Vector2(payload["vx"], payload["vy"]).length())


def test_invalid_time_step_is_rejected():
    with pytest.raises(InvalidConfiguration):
        Environment(SimulationConfig(time_step=0.0))


@pytest.mark.slow
def test_long_run_keeps_invariants():
    params = SteeringParameters(max_speed=2.0, max_force=0.1)
    env = Environment(SimulationConfig(initial_population=150, width=40.0, height=30.0, steering=params))

    for _ in range(2000):
        metrics = env.tick()

    assert metrics.population == 150
    assert metrics.max_speed <= params.max_speed + 1e-9
    assert 0.0 <= metrics.polarization <= 1.0 + 1e-9
    for fish in env.agents:
        assert -20.0 <= fish.position.x <= 20.0
        assert -15.0 <= fish.position.y <= 15.0
