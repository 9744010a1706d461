from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from .errors import InvalidConfiguration


@dataclass(frozen=True)
class SteeringParameters:
    """Per-species tuning shared by every fish that references it.

    Speeds are world units per second. The radii drive the neighbour query
    (alignment and cohesion) and the close-range separation test; the weights
    scale each steering rule before they are summed.
    """

    max_speed: float = 1.0
    max_force: float = 0.03
    neighborhood_radius: float = 3.0
    separation_radius: float = 1.0
    separation_weight: float = 1.0
    cohesion_weight: float = 1.0
    alignment_weight: float = 1.0

    def __post_init__(self) -> None:
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise InvalidConfiguration(f"{item.name} must be a finite number, got {value!r}")
        if self.max_speed <= 0:
            raise InvalidConfiguration(f"max_speed must be positive, got {self.max_speed}")
        if self.max_force <= 0:
            raise InvalidConfiguration(f"max_force must be positive, got {self.max_force}")
        for name in (
            "neighborhood_radius",
            "separation_radius",
            "separation_weight",
            "cohesion_weight",
            "alignment_weight",
        ):
            if getattr(self, name) < 0:
                raise InvalidConfiguration(f"{name} must not be negative, got {getattr(self, name)}")


@dataclass
class SimulationConfig:
    time_step: float = 1.0 / 60.0
    width: float = 16.0
    height: float = 9.0
    initial_population: int = 10
    cell_size: float = 3.0
    spatial_index: str = "grid"
    seed: int = 42
    config_version: str = "v1"
    steering: SteeringParameters = field(default_factory=SteeringParameters)

    @property
    def bounds(self) -> tuple[float, float]:
        return (self.width, self.height)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text())
        return load_config(data or {})


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    broadcast_interval: int = 2


def load_config(raw: dict) -> SimulationConfig:
    steering = SteeringParameters(**raw.get("steering", {}))
    sim_values = {k: v for k, v in raw.items() if k != "steering"}
    bounds = sim_values.pop("bounds", None)
    if bounds is not None:
        if not isinstance(bounds, (list, tuple)) or len(bounds) != 2:
            raise InvalidConfiguration(f"bounds must be a [width, height] pair, got {bounds!r}")
        sim_values["width"] = float(bounds[0])
        sim_values["height"] = float(bounds[1])
    return SimulationConfig(steering=steering, **sim_values)
