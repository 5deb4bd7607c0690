from __future__ import annotations

import numpy as np
from PySide6.QtCore import QPointF, Qt, Signal
from PySide6.QtGui import QCursor

from easel.core import drawing
from easel.core.raster import snapshot
from easel.core.transform import apply_inverse
from easel.tools.basetool import BaseTool, PointerEvent
from easel.tools.handles import IDLE, Dragging, Handle


class PaintTool(BaseTool):
    """Freehand brush drawing into the active raster layer.

    Strokes land directly in the layer buffer so they show up while
    dragging. The buffer at press time travels with the gesture and is
    emitted together with the final pixels through ``paint_committed``.
    """

    name = "Paint"
    icon = "icons/toolpen.png"
    shortcut = "B"
    category = "draw"

    erase = False
    verb = "paint on"
    label = "Paint"

    paint_committed = Signal(str, object, object)

    def __init__(self, editor):
        super().__init__(editor)
        self.cursor = QCursor(Qt.CrossCursor)
        self.layer_id: str | None = None
        self.last_point: QPointF | None = None

    def brush_size(self) -> float:
        return self.editor.project.settings.paint_brush_size

    def brush_color(self) -> str:
        return self.editor.project.settings.foreground_color

    # ------------------------------------------------------------------
    def mousePressEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton:
            return
        layer = self.editor.active_layer
        if layer is None:
            self.warn(f"No active layer to {self.verb}.")
            return
        if layer.locked:
            self.warn(f"Cannot {self.verb} a locked layer.")
            return
        if layer.is_text:
            self.warn(f"Cannot {self.verb} a text layer. Please rasterize it first.")
            return
        buffer = self.editor.project.buffer(layer.id)
        if buffer is None:
            return
        self.layer_id = layer.id
        self.state = Dragging(Handle.MOVE, QPointF(event.pos), snapshot(buffer))
        self.last_point = None
        self._stroke_to(event.pos)

    def mouseMoveEvent(self, event: PointerEvent):
        if isinstance(self.state, Dragging):
            self._stroke_to(event.pos)

    def mouseReleaseEvent(self, event: PointerEvent):
        if event.button == Qt.LeftButton:
            self._finish()

    def pointerCancelEvent(self):
        # Pixels already on the layer stay, so the stroke is kept.
        self._finish()

    def deactivate(self):
        self._finish()

    # ------------------------------------------------------------------
    def _stroke_to(self, canvas_point: QPointF):
        project = self.editor.project
        layer = project.find_layer(self.layer_id)
        buffer = project.buffer(self.layer_id)
        if layer is None or buffer is None:
            return
        point = apply_inverse(layer.transform, canvas_point)
        start = self.last_point if self.last_point is not None else point
        drawing.stroke_segment(
            buffer,
            start,
            point,
            color=self.brush_color(),
            width=self.brush_size() / layer.transform.average_scale,
            erase=self.erase,
        )
        self.last_point = point
        self.changed.emit()

    def _finish(self):
        if not isinstance(self.state, Dragging):
            return
        before = self.state.snapshot
        layer_id = self.layer_id
        self.state = IDLE
        self.layer_id = None
        self.last_point = None
        after = self.editor.project.buffer(layer_id)
        if after is None:
            return
        if np.array_equal(after, before):
            return
        after = snapshot(after)
        # The command re-applies the stroke, so the live pixels are rolled back.
        self.editor.project.layer_buffers[layer_id][...] = before
        self.paint_committed.emit(layer_id, before, after)
