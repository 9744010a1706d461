from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional

from ..sim.core.config import SimulationConfig
from ..sim.core.environment import Environment
from ..sim.core.spatial_grid import SpatialGrid
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)


_BASIC_HEADER = [
    "tick",
    "population",
    "spawned",
    "removed",
    "neighbor_checks",
    "avg_speed",
    "tick_ms",
]

_DETAILED_HEADER = _BASIC_HEADER + [
    "max_speed",
    "polarization",
    "mean_neighbors",
    "occupied_cells",
    "avg_agents_per_cell",
    "max_cell_occupancy",
    "population_density",
]


def _format_basic_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.population,
        metrics.spawned,
        metrics.removed,
        metrics.neighbor_checks,
        f"{metrics.average_speed:.4f}",
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(environment: Environment, metrics: TickMetrics, grid: SpatialGrid, tick_ms: float) -> list[object]:
    population = metrics.population
    width, height = environment.bounds
    grid.rebuild(environment.agents)
    cell_counts = grid.occupancy()

    occupied_cells = len(cell_counts)
    if population <= 0:
        mean_neighbors = 0.0
        avg_agents_per_cell = 0.0
        max_cell_occupancy = 0
    else:
        mean_neighbors = metrics.neighbor_checks / population
        avg_agents_per_cell = population / occupied_cells
        max_cell_occupancy = max(cell_counts.values())
    population_density = population / (width * height)

    return _format_basic_row(metrics, tick_ms) + [
        f"{metrics.max_speed:.4f}",
        f"{metrics.polarization:.4f}",
        f"{mean_neighbors:.4f}",
        occupied_cells,
        f"{avg_agents_per_cell:.4f}",
        max_cell_occupancy,
        f"{population_density:.6f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def _load_config(config_path: Optional[Path], seed: Optional[int]) -> SimulationConfig:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    return config


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 500,
    config_path: Optional[Path] = None,
) -> Environment:
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    config = _load_config(config_path, seed)
    environment = Environment(config)
    logger.info("running %d steps (seed=%d, population=%d)", steps, config.seed, len(environment))

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    speed_series: list[float] = []
    polarization_series: list[float] = []
    neighbor_checks_series: list[float] = []
    occupancy_grid = SpatialGrid(config.cell_size)

    try:
        for _ in range(steps):
            metrics = environment.tick()
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms

            if summary_path:
                tick_ms_series.append(tick_ms)
                speed_series.append(metrics.average_speed)
                polarization_series.append(metrics.polarization)
                neighbor_checks_series.append(float(metrics.neighbor_checks))

            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(environment, metrics, occupancy_grid, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    if summary_path:
        window = max(1, int(summary_window))
        tail_slice = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        summary = {
            "steps": steps,
            "seed": config.seed,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "final_population": len(environment),
            "tick_ms": _summary_stats(tick_ms_series),
            "avg_speed": _summary_stats(speed_series),
            "polarization": _summary_stats(polarization_series),
            "neighbor_checks": _summary_stats(neighbor_checks_series),
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(tick_ms_series[tail_slice]),
                "polarization": _summary_stats(polarization_series[tail_slice]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))
        logger.info("wrote summary to %s", summary_path)

    return environment


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless fish tank flocking simulation")
    parser.add_argument("--steps", type=int, default=3000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML file with simulation settings")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--summary-window",
        type=int,
        default=500,
        help="Tail window size (ticks) for summary stats.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config_path=args.config,
    )


if __name__ == "__main__":
    main()
