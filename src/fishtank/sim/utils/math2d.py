from __future__ import annotations

import math

from pygame.math import Vector2

# Below this squared speed the heading is left untouched instead of snapping.
HEADING_EPSILON_SQ = 1e-4


def safe_normalize(vector: Vector2) -> Vector2:
    return safe_normalize_xy(vector.x, vector.y)


def safe_normalize_xy(x: float, y: float) -> Vector2:
    # pygame's Vector2.normalize() raises on the zero vector.
    magnitude_sq = x * x + y * y
    if magnitude_sq == 0.0:
        return Vector2()
    inv = 1.0 / math.sqrt(magnitude_sq)
    return Vector2(x * inv, y * inv)


def clamp_length(vector: Vector2, max_length: float) -> Vector2:
    """Return ``vector`` unchanged when within ``max_length``, otherwise rescaled to it."""
    if max_length <= 0:
        return Vector2()
    magnitude_sq = vector.length_squared()
    if magnitude_sq <= max_length * max_length:
        return Vector2(vector)
    return safe_normalize(vector) * max_length


def heading_from_velocity(vector: Vector2) -> float:
    if vector.length_squared() == 0.0:
        return 0.0
    return math.atan2(vector.y, vector.x)


def mean(vectors: list[Vector2]) -> Vector2:
    if not vectors:
        return Vector2()
    total_x = 0.0
    total_y = 0.0
    for vector in vectors:
        total_x += vector.x
        total_y += vector.y
    count = len(vectors)
    return Vector2(total_x / count, total_y / count)
