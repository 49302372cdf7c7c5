"""Tuple-based 3D vector helpers shared by the map parser and brush builder.

Pure ``math`` arithmetic on ``(x, y, z)`` tuples.
"""

from __future__ import annotations

import math

Vec3 = tuple[float, float, float]

#: Below this length a vector is treated as degenerate.
EPS = 1e-6


def add(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def scale(a: Vec3, s: float) -> Vec3:
    return (a[0] * s, a[1] * s, a[2] * s)


def dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def length(a: Vec3) -> float:
    return math.sqrt(a[0] * a[0] + a[1] * a[1] + a[2] * a[2])


def distance(a: Vec3, b: Vec3) -> float:
    return length(sub(a, b))


def normalise(a: Vec3) -> Vec3:
    ln = length(a)
    if ln < EPS:
        return (0.0, 0.0, 0.0)
    return (a[0] / ln, a[1] / ln, a[2] / ln)


def z_up_to_y_up(a: Vec3) -> Vec3:
    """Rotate -90 degrees about X: source ``(x, y, z)`` becomes ``(x, z, -y)``."""

    return (a[0], a[2], -a[1])
