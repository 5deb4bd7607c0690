"""Handle geometry shared by the crop, canvas resize, transform and text tools.

Everything in this module is pure: functions take the geometry at the start
of a drag plus the pointer delta and return the new geometry.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from PySide6.QtCore import QPointF, QRect, QRectF


class Handle(Enum):
    TOP_LEFT = "top-left"
    TOP = "top"
    TOP_RIGHT = "top-right"
    RIGHT = "right"
    BOTTOM_RIGHT = "bottom-right"
    BOTTOM = "bottom"
    BOTTOM_LEFT = "bottom-left"
    LEFT = "left"
    MOVE = "move"
    ROTATE_TOP = "rotator-top"
    ROTATE_RIGHT = "rotator-right"
    ROTATE_BOTTOM = "rotator-bottom"
    ROTATE_LEFT = "rotator-left"
    PIVOT = "pivot"

    @property
    def has_left(self) -> bool:
        return self in (Handle.TOP_LEFT, Handle.LEFT, Handle.BOTTOM_LEFT)

    @property
    def has_right(self) -> bool:
        return self in (Handle.TOP_RIGHT, Handle.RIGHT, Handle.BOTTOM_RIGHT)

    @property
    def has_top(self) -> bool:
        return self in (Handle.TOP_LEFT, Handle.TOP, Handle.TOP_RIGHT)

    @property
    def has_bottom(self) -> bool:
        return self in (Handle.BOTTOM_LEFT, Handle.BOTTOM, Handle.BOTTOM_RIGHT)

    @property
    def is_corner(self) -> bool:
        return (self.has_left or self.has_right) and (self.has_top or self.has_bottom)

    @property
    def is_rotator(self) -> bool:
        return self in ROTATE_HANDLES

    def mirrored(self, horizontal: bool, vertical: bool) -> "Handle":
        """The handle on the opposite side(s) of the rectangle."""

        handle = self
        if horizontal:
            handle = _MIRROR_HORIZONTAL.get(handle, handle)
        if vertical:
            handle = _MIRROR_VERTICAL.get(handle, handle)
        return handle


ROTATE_HANDLES = (
    Handle.ROTATE_TOP,
    Handle.ROTATE_RIGHT,
    Handle.ROTATE_BOTTOM,
    Handle.ROTATE_LEFT,
)

_MIRROR_HORIZONTAL = {
    Handle.TOP_LEFT: Handle.TOP_RIGHT,
    Handle.TOP_RIGHT: Handle.TOP_LEFT,
    Handle.LEFT: Handle.RIGHT,
    Handle.RIGHT: Handle.LEFT,
    Handle.BOTTOM_LEFT: Handle.BOTTOM_RIGHT,
    Handle.BOTTOM_RIGHT: Handle.BOTTOM_LEFT,
}

_MIRROR_VERTICAL = {
    Handle.TOP_LEFT: Handle.BOTTOM_LEFT,
    Handle.BOTTOM_LEFT: Handle.TOP_LEFT,
    Handle.TOP: Handle.BOTTOM,
    Handle.BOTTOM: Handle.TOP,
    Handle.TOP_RIGHT: Handle.BOTTOM_RIGHT,
    Handle.BOTTOM_RIGHT: Handle.TOP_RIGHT,
}


@dataclass(frozen=True, slots=True)
class Idle:
    """No gesture in progress."""


@dataclass(frozen=True, slots=True)
class Dragging:
    """A drag on ``handle`` that started at ``start`` (canvas coordinates).

    ``snapshot`` holds whatever the tool needs to recompute its geometry
    from scratch on every move, typically the rect or transform at press
    time.
    """

    handle: Handle
    start: QPointF
    snapshot: object = None


IDLE = Idle()


def resize_rect(
    rect: QRectF,
    handle: Handle,
    dx: float,
    dy: float,
    *,
    keep_aspect: bool = False,
    min_width: float = 1.0,
    min_height: float = 1.0,
) -> QRectF:
    """Resize ``rect`` by dragging ``handle`` by ``(dx, dy)``.

    With ``keep_aspect`` a corner drag scales both sides by the factor of the
    axis that moved furthest and keeps the opposite corner in place, while an
    edge drag derives the other side from the aspect ratio and keeps it
    centred.
    """

    x, y, w, h = rect.x(), rect.y(), rect.width(), rect.height()
    new_x, new_y, new_w, new_h = x, y, w, h

    if keep_aspect and w > 0 and h > 0:
        aspect = w / h
        if handle.is_corner:
            if abs(dx) > abs(dy):
                target = w + (-dx if handle.has_left else dx)
                scale = target / w
            else:
                target = h + (-dy if handle.has_top else dy)
                scale = target / h
            new_w = w * scale
            new_h = h * scale
            if handle.has_left:
                new_x = x + w - new_w
            if handle.has_top:
                new_y = y + h - new_h
        elif handle.has_left or handle.has_right:
            if handle.has_left:
                new_x += dx
                new_w -= dx
            else:
                new_w += dx
            new_h = new_w / aspect
            new_y += (h - new_h) / 2
        else:
            if handle.has_top:
                new_y += dy
                new_h -= dy
            else:
                new_h += dy
            new_w = new_h * aspect
            new_x += (w - new_w) / 2
    else:
        if handle.has_left:
            new_x += dx
            new_w -= dx
        if handle.has_right:
            new_w += dx
        if handle.has_top:
            new_y += dy
            new_h -= dy
        if handle.has_bottom:
            new_h += dy

    return QRectF(new_x, new_y, max(min_width, new_w), max(min_height, new_h))


def handle_points(rect: QRectF) -> dict[Handle, QPointF]:
    """Positions of the eight resize handles around ``rect``."""

    left, top = rect.left(), rect.top()
    right, bottom = rect.right(), rect.bottom()
    cx, cy = rect.center().x(), rect.center().y()
    return {
        Handle.TOP_LEFT: QPointF(left, top),
        Handle.TOP: QPointF(cx, top),
        Handle.TOP_RIGHT: QPointF(right, top),
        Handle.RIGHT: QPointF(right, cy),
        Handle.BOTTOM_RIGHT: QPointF(right, bottom),
        Handle.BOTTOM: QPointF(cx, bottom),
        Handle.BOTTOM_LEFT: QPointF(left, bottom),
        Handle.LEFT: QPointF(left, cy),
    }


def rotator_points(rect: QRectF, distance: float) -> dict[Handle, QPointF]:
    """Positions of the rotation handles, ``distance`` outside each edge."""

    cx, cy = rect.center().x(), rect.center().y()
    return {
        Handle.ROTATE_TOP: QPointF(cx, rect.top() - distance),
        Handle.ROTATE_RIGHT: QPointF(rect.right() + distance, cy),
        Handle.ROTATE_BOTTOM: QPointF(cx, rect.bottom() + distance),
        Handle.ROTATE_LEFT: QPointF(rect.left() - distance, cy),
    }


def hit_test(points: dict[Handle, QPointF], position: QPointF, radius: float) -> Handle | None:
    """Return the handle closest to ``position`` within ``radius``."""

    best: Handle | None = None
    best_distance = radius
    for handle, point in points.items():
        distance = math.hypot(point.x() - position.x(), point.y() - position.y())
        if distance <= best_distance:
            best = handle
            best_distance = distance
    return best


def round_rect(rect: QRectF) -> QRect:
    """Integer ``QRect`` with the rounded origin and size of ``rect``."""

    return QRect(
        int(math.floor(rect.x() + 0.5)),
        int(math.floor(rect.y() + 0.5)),
        max(1, int(math.floor(rect.width() + 0.5))),
        max(1, int(math.floor(rect.height() + 0.5))),
    )
