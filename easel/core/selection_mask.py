"""Canvas-sized selection masks and the algebra tools use to build them.

A mask holds one intensity per canvas pixel, ``0`` meaning unselected and
``255`` fully selected. Internally the intensities live in a ``(height,
width)`` ``uint8`` array; :meth:`SelectionMask.to_rgba` produces the
grey-scale RGBA encoding (R = G = B = intensity, A = 255) used for display
and export.

All operations return new arrays and never modify their inputs.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Iterable, Sequence

import numpy as np
from PySide6.QtCore import QPointF, QRect
from PySide6.QtGui import QImage


# Number of box blur passes used to approximate a gaussian feather.
FEATHER_PASSES = 3
# Intensity threshold separating selected from unselected pixels for edges.
EDGE_THRESHOLD = 127


class SelectionMode(Enum):
    REPLACE = auto()
    ADD = auto()
    SUBTRACT = auto()
    INTERSECT = auto()


def selection_mode_for(shift: bool, ctrl: bool) -> SelectionMode:
    """Map held modifier keys to the mode a new selection combines with."""

    if shift and ctrl:
        return SelectionMode.INTERSECT
    if shift:
        return SelectionMode.ADD
    if ctrl:
        return SelectionMode.SUBTRACT
    return SelectionMode.REPLACE


def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def _check_same_shape(existing: np.ndarray, incoming: np.ndarray) -> None:
    if existing.shape != incoming.shape:
        raise ValueError(
            f"Mask sizes differ: {existing.shape[::-1]} vs {incoming.shape[::-1]}"
        )


def combine(existing: np.ndarray, incoming: np.ndarray, mode: SelectionMode) -> np.ndarray:
    """Combine two intensity arrays.

    ``SUBTRACT`` computes ``existing * (1 - incoming / 255)`` and rounds half
    to even, which is how 8-bit clamped pixel stores round.
    """

    _check_same_shape(existing, incoming)
    if mode is SelectionMode.REPLACE:
        return np.array(incoming, dtype=np.uint8, copy=True)
    if mode is SelectionMode.ADD:
        return np.maximum(existing, incoming).astype(np.uint8)
    if mode is SelectionMode.INTERSECT:
        return np.minimum(existing, incoming).astype(np.uint8)
    if mode is SelectionMode.SUBTRACT:
        remaining = existing.astype(np.float64) * (1.0 - incoming.astype(np.float64) / 255.0)
        return np.clip(np.rint(remaining), 0, 255).astype(np.uint8)
    raise ValueError(f"Unknown selection mode: {mode!r}")


def invert(values: np.ndarray) -> np.ndarray:
    return (255 - values.astype(np.int16)).astype(np.uint8)


def _kernel_offsets(radius: int) -> Iterable[tuple[int, int]]:
    limit = radius * radius
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            if (dx or dy) and dx * dx + dy * dy <= limit:
                yield dx, dy


def dilate(values: np.ndarray, radius: int) -> np.ndarray:
    """Maximum over a circular neighbourhood. Neighbours outside the canvas
    are ignored rather than treated as zero or wrapped."""

    height, width = values.shape
    result = np.array(values, dtype=np.uint8, copy=True)
    for dx, dy in _kernel_offsets(radius):
        dst_x0, dst_x1 = max(0, -dx), width - max(0, dx)
        dst_y0, dst_y1 = max(0, -dy), height - max(0, dy)
        if dst_x1 <= dst_x0 or dst_y1 <= dst_y0:
            continue
        target = result[dst_y0:dst_y1, dst_x0:dst_x1]
        np.maximum(
            target,
            values[dst_y0 + dy:dst_y1 + dy, dst_x0 + dx:dst_x1 + dx],
            out=target,
        )
    return result


def grow_shrink(values: np.ndarray, radius: int) -> np.ndarray:
    """Grow the selection for positive ``radius``, shrink it for negative."""

    radius = int(radius)
    if radius == 0:
        return np.array(values, dtype=np.uint8, copy=True)
    if radius > 0:
        return dilate(values, radius)
    return invert(dilate(invert(values), -radius))


def _box_blur_axis(values: np.ndarray, radius: int, axis: int) -> np.ndarray:
    pad = [(0, 0), (0, 0)]
    pad[axis] = (radius + 1, radius)
    padded = np.pad(values, pad, mode="edge")
    summed = np.cumsum(padded, axis=axis)
    window = 2 * radius + 1
    if axis == 0:
        totals = summed[window:] - summed[:-window]
    else:
        totals = summed[:, window:] - summed[:, :-window]
    return totals / window


def feather(values: np.ndarray, radius: float) -> np.ndarray:
    """Soften the mask with repeated separable box blurs."""

    radius = int(radius)
    if radius < 1:
        return np.array(values, dtype=np.uint8, copy=True)
    blurred = values.astype(np.float64)
    for _ in range(FEATHER_PASSES):
        blurred = _box_blur_axis(blurred, radius, axis=1)
        blurred = _box_blur_axis(blurred, radius, axis=0)
    return np.clip(_round_half_up(blurred), 0, 255).astype(np.uint8)


def edges(values: np.ndarray) -> np.ndarray:
    """Return a boolean array marking selected pixels on the selection border."""

    selected = values > EDGE_THRESHOLD
    padded = np.pad(selected, 1, mode="constant", constant_values=False)
    open_neighbour = (
        ~padded[:-2, 1:-1]
        | ~padded[2:, 1:-1]
        | ~padded[1:-1, :-2]
        | ~padded[1:-1, 2:]
    )
    return selected & open_neighbour


def rectangle_mask(width: int, height: int, rect: QRect) -> np.ndarray:
    values = np.zeros((height, width), dtype=np.uint8)
    left = max(0, rect.x())
    top = max(0, rect.y())
    right = min(width, rect.x() + rect.width())
    bottom = min(height, rect.y() + rect.height())
    if right > left and bottom > top:
        values[top:bottom, left:right] = 255
    return values


def _bounds(points: Sequence[QPointF]) -> tuple[float, float, float, float]:
    xs = [p.x() for p in points]
    ys = [p.y() for p in points]
    return min(xs), min(ys), max(xs), max(ys)


def polygon_mask(width: int, height: int, points: Sequence[QPointF]) -> np.ndarray:
    """Hard-edged scanline fill of a closed polygon."""

    values = np.zeros((height, width), dtype=np.uint8)
    if len(points) < 3:
        return values
    min_x, min_y, max_x, max_y = _bounds(points)
    first_row = max(0, int(np.floor(min_y)))
    last_row = min(height - 1, int(np.ceil(max_y)))
    count = len(points)
    for y in range(first_row, last_row + 1):
        crossings = []
        for i in range(count):
            p1 = points[i]
            p2 = points[(i + 1) % count]
            y1, y2 = p1.y(), p2.y()
            if (y1 <= y < y2) or (y2 <= y < y1):
                crossings.append(p1.x() + (y - y1) / (y2 - y1) * (p2.x() - p1.x()))
        crossings.sort()
        for start, end in zip(crossings[0::2], crossings[1::2]):
            left = max(0, int(np.ceil(start)))
            right = min(width - 1, int(np.floor(end)))
            if right >= left:
                values[y, left:right + 1] = 255
    return values


def _inside_polygon(xs: np.ndarray, ys: np.ndarray, points: Sequence[QPointF]) -> np.ndarray:
    inside = np.zeros(xs.shape, dtype=bool)
    count = len(points)
    j = count - 1
    for i in range(count):
        xi, yi = points[i].x(), points[i].y()
        xj, yj = points[j].x(), points[j].y()
        straddles = (yi > ys) != (yj > ys)
        if yj != yi:
            cross_x = (xj - xi) * (ys - yi) / (yj - yi) + xi
            inside ^= straddles & (xs < cross_x)
        j = i
    return inside


def _distance_to_outline(xs: np.ndarray, ys: np.ndarray, points: Sequence[QPointF]) -> np.ndarray:
    best = np.full(xs.shape, np.inf)
    count = len(points)
    for i in range(count):
        x1, y1 = points[i].x(), points[i].y()
        x2, y2 = points[(i + 1) % count].x(), points[(i + 1) % count].y()
        dx = x2 - x1
        dy = y2 - y1
        length_sq = dx * dx + dy * dy
        if length_sq == 0:
            t = 0.0
        else:
            t = np.clip(((xs - x1) * dx + (ys - y1) * dy) / length_sq, 0.0, 1.0)
        np.minimum(best, np.hypot(xs - (x1 + t * dx), ys - (y1 + t * dy)), out=best)
    return best


def lasso_mask(width: int, height: int, points: Sequence[QPointF]) -> np.ndarray:
    """Anti-aliased polygon fill driven by the signed distance to the outline.

    Pixels whose centre is inside get ``clamp(distance + 0.5)`` coverage and
    pixels outside get ``clamp(0.5 - distance)``.
    """

    values = np.zeros((height, width), dtype=np.uint8)
    if len(points) < 3 or width == 0 or height == 0:
        return values
    min_x, min_y, max_x, max_y = _bounds(points)
    left = max(0, int(np.floor(min_x)) - 1)
    right = min(width - 1, int(np.ceil(max_x)) + 1)
    top = max(0, int(np.floor(min_y)) - 1)
    bottom = min(height - 1, int(np.ceil(max_y)) + 1)
    if right < left or bottom < top:
        return values
    ys, xs = np.mgrid[top:bottom + 1, left:right + 1].astype(np.float64)
    distance = _distance_to_outline(xs, ys, points)
    signed = np.where(_inside_polygon(xs, ys, points), distance, -distance)
    coverage = np.clip(signed + 0.5, 0.0, 1.0)
    values[top:bottom + 1, left:right + 1] = _round_half_up(coverage * 255).astype(np.uint8)
    return values


class SelectionMask:
    """The project's single active selection."""

    def __init__(self, width: int, height: int, values: np.ndarray | None = None) -> None:
        if values is None:
            values = np.zeros((height, width), dtype=np.uint8)
        elif values.shape != (height, width):
            raise ValueError(
                f"Mask values are {values.shape[1]}x{values.shape[0]}, expected {width}x{height}"
            )
        self._values = np.array(values, dtype=np.uint8, copy=True)

    @classmethod
    def from_values(cls, values: np.ndarray) -> "SelectionMask":
        height, width = values.shape
        return cls(width, height, values)

    @property
    def width(self) -> int:
        return int(self._values.shape[1])

    @property
    def height(self) -> int:
        return int(self._values.shape[0])

    @property
    def values(self) -> np.ndarray:
        """Read-only view of the intensities."""

        view = self._values.view()
        view.flags.writeable = False
        return view

    def set_values(self, values: np.ndarray) -> None:
        self._values = np.array(values, dtype=np.uint8, copy=True)

    def copy(self) -> "SelectionMask":
        return SelectionMask.from_values(self._values)

    def is_empty(self) -> bool:
        return not self._values.any()

    def clear(self) -> None:
        self._values = np.zeros_like(self._values)

    def value_at(self, x: int, y: int) -> int:
        return int(self._values[y, x])

    def bounding_rect(self) -> QRect | None:
        rows = np.flatnonzero(self._values.any(axis=1))
        if rows.size == 0:
            return None
        cols = np.flatnonzero(self._values.any(axis=0))
        return QRect(
            int(cols[0]),
            int(rows[0]),
            int(cols[-1] - cols[0] + 1),
            int(rows[-1] - rows[0] + 1),
        )

    def resized(self, width: int, height: int, offset_x: int = 0, offset_y: int = 0) -> np.ndarray:
        """Return intensities for a canvas of the new size whose origin sits at
        ``(offset_x, offset_y)`` of the current canvas."""

        result = np.zeros((height, width), dtype=np.uint8)
        src_x0 = max(0, offset_x)
        src_y0 = max(0, offset_y)
        src_x1 = min(self.width, offset_x + width)
        src_y1 = min(self.height, offset_y + height)
        if src_x1 > src_x0 and src_y1 > src_y0:
            result[
                src_y0 - offset_y:src_y1 - offset_y,
                src_x0 - offset_x:src_x1 - offset_x,
            ] = self._values[src_y0:src_y1, src_x0:src_x1]
        return result

    def to_rgba(self) -> np.ndarray:
        rgba = np.empty((self.height, self.width, 4), dtype=np.uint8)
        rgba[..., 0] = self._values
        rgba[..., 1] = self._values
        rgba[..., 2] = self._values
        rgba[..., 3] = 255
        return rgba

    def edge_image(self, color: tuple[int, int, int, int] = (0, 0, 0, 255)) -> QImage:
        """Overlay image with the selection border drawn in ``color``."""

        border = edges(self._values)
        rgba = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        rgba[border] = color
        image = QImage(rgba.data, self.width, self.height, self.width * 4, QImage.Format_RGBA8888)
        return image.copy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SelectionMask):
            return NotImplemented
        return np.array_equal(self._values, other._values)

    __hash__ = None
