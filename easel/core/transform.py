"""Affine placement of layers on the canvas.

A layer's local pixel ``p`` lands on the canvas at
``translate · rotate · scale · p``. Rotation is expressed in degrees and
applied about the layer's local origin before translation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

from PySide6.QtCore import QPointF
from PySide6.QtGui import QTransform


# Relative tolerance used when deciding whether a matrix still decomposes
# into translate · rotate · scale.
_ORTHOGONALITY_EPSILON = 1e-9


def round2(value: float) -> float:
    """Round half up to two decimal places."""

    return math.floor(value * 100 + 0.5) / 100


def rotate_vector(x: float, y: float, degrees: float) -> tuple[float, float]:
    rad = math.radians(degrees)
    cos = math.cos(rad)
    sin = math.sin(rad)
    return x * cos - y * sin, x * sin + y * cos


@dataclass(frozen=True, slots=True)
class Transform:
    translate_x: float = 0.0
    translate_y: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    rotation: float = 0.0

    def __post_init__(self) -> None:
        if self.scale_x == 0 or self.scale_y == 0:
            raise ValueError("Transform scale components must be non-zero.")

    @classmethod
    def identity(cls) -> "Transform":
        return cls()

    @property
    def average_scale(self) -> float:
        return (abs(self.scale_x) + abs(self.scale_y)) / 2

    def is_identity(self) -> bool:
        return self == Transform()

    def translated(self, dx: float, dy: float) -> "Transform":
        return replace(
            self,
            translate_x=self.translate_x + dx,
            translate_y=self.translate_y + dy,
        )

    def with_translation(self, x: float, y: float) -> "Transform":
        return replace(self, translate_x=x, translate_y=y)

    def to_dict(self) -> dict[str, float]:
        return {
            "translate_x": self.translate_x,
            "translate_y": self.translate_y,
            "scale_x": self.scale_x,
            "scale_y": self.scale_y,
            "rotation": self.rotation,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Transform":
        data = data or {}
        return cls(
            translate_x=float(data.get("translate_x", 0.0)),
            translate_y=float(data.get("translate_y", 0.0)),
            scale_x=float(data.get("scale_x", 1.0)),
            scale_y=float(data.get("scale_y", 1.0)),
            rotation=float(data.get("rotation", 0.0)),
        )


def _matrix(t: Transform) -> tuple[float, float, float, float, float, float]:
    """Return ``(a, b, c, d, e, f)`` with ``x' = a·x + b·y + e`` and
    ``y' = c·x + d·y + f``."""

    rad = math.radians(t.rotation)
    cos = math.cos(rad)
    sin = math.sin(rad)
    return (
        t.scale_x * cos,
        -t.scale_y * sin,
        t.scale_x * sin,
        t.scale_y * cos,
        t.translate_x,
        t.translate_y,
    )


def _from_matrix(a: float, b: float, c: float, d: float, e: float, f: float) -> Transform:
    column_x = math.hypot(a, c)
    column_y = math.hypot(b, d)
    dot = a * b + c * d
    if abs(dot) > _ORTHOGONALITY_EPSILON * max(1.0, column_x * column_y):
        raise ValueError(
            "Result contains shear and cannot be expressed as translate, rotate, scale."
        )
    rotation = math.degrees(math.atan2(c, a))
    rad = math.radians(rotation)
    scale_y = -b * math.sin(rad) + d * math.cos(rad)
    return Transform(
        translate_x=e,
        translate_y=f,
        scale_x=column_x,
        scale_y=scale_y,
        rotation=rotation,
    )


def apply(t: Transform, point: QPointF) -> QPointF:
    """Map a layer-local point to canvas space."""

    x, y = rotate_vector(point.x() * t.scale_x, point.y() * t.scale_y, t.rotation)
    return QPointF(x + t.translate_x, y + t.translate_y)


def apply_inverse(t: Transform, point: QPointF) -> QPointF:
    """Map a canvas point back into the layer's local space."""

    x, y = rotate_vector(
        point.x() - t.translate_x, point.y() - t.translate_y, -t.rotation
    )
    return QPointF(x / t.scale_x, y / t.scale_y)


def compose(parent: Transform, child: Transform) -> Transform:
    """Return the transform equivalent to applying ``child`` then ``parent``.

    Raises ``ValueError`` when the product introduces shear, which happens
    for non-uniform parent scales combined with a child rotation that is not
    a multiple of 90 degrees.
    """

    pa, pb, pc, pd, pe, pf = _matrix(parent)
    ca, cb, cc, cd, ce, cf = _matrix(child)
    return _from_matrix(
        pa * ca + pb * cc,
        pa * cb + pb * cd,
        pc * ca + pd * cc,
        pc * cb + pd * cd,
        pa * ce + pb * cf + pe,
        pc * ce + pd * cf + pf,
    )


def invert(t: Transform) -> Transform:
    """Return the transform that undoes ``t``.

    Raises ``ValueError`` for non-uniformly scaled, rotated transforms whose
    inverse would need shear; use :func:`apply_inverse` for point mapping.
    """

    a, b, c, d, e, f = _matrix(t)
    det = a * d - b * c
    ia = d / det
    ib = -b / det
    ic = -c / det
    id_ = a / det
    return _from_matrix(ia, ib, ic, id_, -(ia * e + ib * f), -(ic * e + id_ * f))


def to_qtransform(t: Transform) -> QTransform:
    transform = QTransform()
    transform.translate(t.translate_x, t.translate_y)
    transform.rotate(t.rotation)
    transform.scale(t.scale_x, t.scale_y)
    return transform


__all__ = [
    "Transform",
    "apply",
    "apply_inverse",
    "compose",
    "invert",
    "rotate_vector",
    "round2",
    "to_qtransform",
]
