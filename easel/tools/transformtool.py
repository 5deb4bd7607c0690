"""Free transform: move, resize, rotate and re-pivot the active layer."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

from PySide6.QtCore import QPointF, QRectF, Qt, Signal
from PySide6.QtGui import QColor, QPainter, QPen, QPolygonF

from easel.core.layer import Layer
from easel.core.transform import Transform, rotate_vector, round2
from easel.tools._rect_tool import cursor_for_handle
from easel.tools.basetool import BaseTool, KeyEvent, PointerEvent
from easel.tools.handles import (
    IDLE,
    Dragging,
    Handle,
    handle_points,
    hit_test,
    resize_rect,
    rotator_points,
)


GIZMO_BASE_COLOR = QColor("#ffffff")
GIZMO_ACTIVE_COLOR = QColor("#ffc800")
GIZMO_OUTLINE_COLOR = QColor(0, 0, 0, 200)
GIZMO_BORDER_COLOR = QColor(66, 133, 244)

DEFAULT_PIVOT = (0.5, 0.5)


@dataclass(frozen=True, slots=True)
class _Snapshot:
    layer: Layer
    transform: Transform
    pivot: tuple[float, float]


def _sign(value: float) -> float:
    return -1.0 if value < 0 else 1.0


def move_transform(initial: Transform, dx: float, dy: float, *, lock_axis: bool) -> Transform:
    if lock_axis:
        if abs(dx) > abs(dy):
            dy = 0.0
        else:
            dx = 0.0
    return initial.translated(dx, dy)


def resize_transform(
    initial: Transform,
    width: int,
    height: int,
    handle: Handle,
    dx: float,
    dy: float,
    *,
    keep_aspect: bool,
) -> Transform:
    """Resize a layer of ``width`` x ``height`` pixels by dragging ``handle``.

    The canvas delta is rotated into the layer's frame and applied to the
    scaled layer rectangle. On a mirrored layer the handle is drawn on the
    flipped side, so the drag resizes that side and the layer origin sits on
    the opposite edge of the normalized rectangle. The new origin is mapped
    back through the initial rotation and the scale keeps its sign.
    """

    flip_x = initial.scale_x < 0
    flip_y = initial.scale_y < 0
    local_dx, local_dy = rotate_vector(dx, dy, -initial.rotation)
    local_rect = QRectF(0, 0, width * initial.scale_x, height * initial.scale_y).normalized()
    resized = resize_rect(
        local_rect, handle.mirrored(flip_x, flip_y), local_dx, local_dy, keep_aspect=keep_aspect
    )
    origin_x = resized.x() + resized.width() if flip_x else resized.x()
    origin_y = resized.y() + resized.height() if flip_y else resized.y()
    offset_x, offset_y = rotate_vector(origin_x, origin_y, initial.rotation)
    return replace(
        initial,
        translate_x=initial.translate_x + offset_x,
        translate_y=initial.translate_y + offset_y,
        scale_x=_sign(initial.scale_x) * resized.width() / width,
        scale_y=_sign(initial.scale_y) * resized.height() / height,
    )


def rotate_transform(
    initial: Transform,
    width: int,
    height: int,
    pivot: tuple[float, float],
    start: QPointF,
    current: QPointF,
    *,
    snap: float | None = None,
) -> Transform:
    """Rotate about ``pivot`` (relative to the layer size) by the angle the
    pointer swept around it since ``start``.

    The pivot's canvas position and the resulting translation are rounded to
    two decimals so repeated drags do not drift.
    """

    pivot_local_x = pivot[0] * width * initial.scale_x
    pivot_local_y = pivot[1] * height * initial.scale_y
    offset_x, offset_y = rotate_vector(pivot_local_x, pivot_local_y, initial.rotation)
    pivot_x = round2(initial.translate_x + offset_x)
    pivot_y = round2(initial.translate_y + offset_y)

    current_angle = math.atan2(current.y() - pivot_y, current.x() - pivot_x)
    start_angle = math.atan2(start.y() - pivot_y, start.x() - pivot_x)
    rotation = initial.rotation + math.degrees(current_angle - start_angle)
    if snap:
        rotation = math.floor(rotation / snap + 0.5) * snap
    rotation = round2(rotation)

    new_x, new_y = rotate_vector(pivot_local_x, pivot_local_y, rotation)
    return replace(
        initial,
        rotation=rotation,
        translate_x=pivot_x - round2(new_x),
        translate_y=pivot_y - round2(new_y),
    )


def move_pivot(
    initial: Transform,
    width: int,
    height: int,
    pivot: tuple[float, float],
    dx: float,
    dy: float,
) -> tuple[float, float]:
    local_dx, local_dy = rotate_vector(dx, dy, -initial.rotation)
    return (
        pivot[0] + local_dx / (width * initial.scale_x),
        pivot[1] + local_dy / (height * initial.scale_y),
    )


class TransformTool(BaseTool):
    """Free transform gizmo around the active layer.

    The layer's transform is updated live while dragging so the canvas shows
    the result; on release the initial transform is restored and the change
    is handed over through ``transform_committed``.
    """

    name = "Transform"
    icon = "icons/tooltransform.png"
    shortcut = "T"
    category = "transform"

    transform_committed = Signal(str, object, object)

    def __init__(self, editor):
        super().__init__(editor)
        self.pivot = DEFAULT_PIVOT
        self.hover_handle: Handle | None = None

    # ------------------------------------------------------------------
    def _local_to_canvas(self, layer: Layer, x: float, y: float) -> QPointF:
        t = layer.transform
        wx, wy = rotate_vector(x, y, t.rotation)
        return QPointF(t.translate_x + wx, t.translate_y + wy)

    def gizmo_points(self, layer: Layer) -> dict[Handle, QPointF]:
        """Canvas positions of every handle of ``layer``'s gizmo."""

        t = layer.transform
        rect = QRectF(0, 0, layer.width * t.scale_x, layer.height * t.scale_y)
        distance = self.config.rotator_distance / self.editor.viewport.zoom
        local = dict(handle_points(rect))
        local.update(rotator_points(rect.normalized(), distance))
        local[Handle.PIVOT] = QPointF(self.pivot[0] * rect.width(), self.pivot[1] * rect.height())
        return {
            handle: self._local_to_canvas(layer, point.x(), point.y())
            for handle, point in local.items()
        }

    def _handle_at(self, layer: Layer, event: PointerEvent) -> Handle | None:
        screen_points = {
            handle: self.to_screen(point)
            for handle, point in self.gizmo_points(layer).items()
        }
        # Pivot wins over the handle it usually sits on top of.
        pivot = screen_points.pop(Handle.PIVOT)
        if hit_test({Handle.PIVOT: pivot}, event.screen_pos, self.config.handle_radius):
            return Handle.PIVOT
        return hit_test(screen_points, event.screen_pos, self.config.handle_radius)

    # ------------------------------------------------------------------
    def activate(self):
        self.pivot = DEFAULT_PIVOT
        self.state = IDLE

    def deactivate(self):
        self._restore()
        super().deactivate()
        self.hover_handle = None

    def mousePressEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton:
            return
        layer = self.editor.active_layer
        if layer is None:
            self.warn("No active layer to transform.")
            return
        if layer.locked:
            self.warn("Active layer is locked and cannot be transformed.")
            return
        handle = self._handle_at(layer, event) or Handle.MOVE
        self.state = Dragging(
            handle, QPointF(event.pos), _Snapshot(layer, layer.transform, self.pivot)
        )

    def mouseMoveEvent(self, event: PointerEvent):
        if not isinstance(self.state, Dragging):
            layer = self.editor.active_layer
            self.hover_handle = self._handle_at(layer, event) if layer else None
            self.cursor.setShape(cursor_for_handle(self.hover_handle))
            return

        snapshot: _Snapshot = self.state.snapshot
        layer = snapshot.layer
        initial = snapshot.transform
        handle = self.state.handle
        dx = event.pos.x() - self.state.start.x()
        dy = event.pos.y() - self.state.start.y()

        if handle is Handle.MOVE:
            layer.transform = move_transform(initial, dx, dy, lock_axis=event.shift)
        elif handle is Handle.PIVOT:
            self.pivot = move_pivot(initial, layer.width, layer.height, snapshot.pivot, dx, dy)
        elif handle.is_rotator:
            layer.transform = rotate_transform(
                initial,
                layer.width,
                layer.height,
                self.pivot,
                self.state.start,
                event.pos,
                snap=self.config.rotation_snap if event.shift else None,
            )
        else:
            layer.transform = resize_transform(
                initial, layer.width, layer.height, handle, dx, dy, keep_aspect=event.shift
            )
        self.changed.emit()

    def mouseReleaseEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton or not isinstance(self.state, Dragging):
            return
        snapshot: _Snapshot = self.state.snapshot
        layer = snapshot.layer
        new_transform = layer.transform
        layer.transform = snapshot.transform
        self.state = IDLE
        if new_transform != snapshot.transform:
            self.transform_committed.emit(layer.id, snapshot.transform, new_transform)
        self.changed.emit()

    def pointerCancelEvent(self):
        self._restore()
        super().pointerCancelEvent()

    def keyPressEvent(self, event: KeyEvent):
        if event.key == Qt.Key_Escape:
            self._restore()
            self.state = IDLE
            self.changed.emit()

    def _restore(self):
        if isinstance(self.state, Dragging):
            snapshot: _Snapshot = self.state.snapshot
            snapshot.layer.transform = snapshot.transform
            self.pivot = snapshot.pivot

    # ------------------------------------------------------------------
    def draw_overlay(self, painter: QPainter):
        layer = self.editor.active_layer
        if layer is None:
            return
        points = {handle: self.to_screen(p) for handle, p in self.gizmo_points(layer).items()}

        painter.save()
        painter.setRenderHint(QPainter.Antialiasing, True)
        border_pen = QPen(GIZMO_BORDER_COLOR)
        border_pen.setCosmetic(True)
        painter.setPen(border_pen)
        painter.setBrush(Qt.NoBrush)
        corners = [Handle.TOP_LEFT, Handle.TOP_RIGHT, Handle.BOTTOM_RIGHT, Handle.BOTTOM_LEFT]
        painter.drawPolygon(QPolygonF([points[h] for h in corners]))

        outline_pen = QPen(GIZMO_OUTLINE_COLOR)
        outline_pen.setCosmetic(True)
        painter.setPen(outline_pen)
        active = self.state.handle if isinstance(self.state, Dragging) else None
        size = self.config.handle_radius
        for handle, center in points.items():
            painter.setBrush(GIZMO_ACTIVE_COLOR if handle in (active, self.hover_handle) else GIZMO_BASE_COLOR)
            box = QRectF(center.x() - size / 2, center.y() - size / 2, size, size)
            if handle.is_rotator:
                painter.drawEllipse(box)
            elif handle is Handle.PIVOT:
                painter.drawEllipse(box)
                painter.drawLine(QPointF(box.left(), center.y()), QPointF(box.right(), center.y()))
                painter.drawLine(QPointF(center.x(), box.top()), QPointF(center.x(), box.bottom()))
            else:
                painter.drawRect(box)
        painter.restore()
