from __future__ import annotations

import math
import random

from pygame.math import Vector2


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_angle(self) -> float:
        """Uniform angle in radians on ``[0, 2*pi)``."""
        return self._random.random() * 2.0 * math.pi

    def next_point_in_rect(self, width: float, height: float) -> Vector2:
        half_w = width * 0.5
        half_h = height * 0.5
        return Vector2(self.next_range(-half_w, half_w), self.next_range(-half_h, half_h))
