"""In-place editing of a text layer's content and box size."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

from PySide6.QtCore import QPointF, QRectF, Qt, Signal
from PySide6.QtGui import QColor, QCursor, QPainter, QPen

from easel.core.layer import Layer
from easel.tools._rect_tool import cursor_for_handle
from easel.tools.basetool import BaseTool, KeyEvent, PointerEvent
from easel.tools.handles import IDLE, Dragging, Handle, handle_points, hit_test


MIN_TEXT_WIDTH = 50
MIN_TEXT_HEIGHT = 20


@dataclass(frozen=True, slots=True)
class _Box:
    width: int
    height: int
    x: float
    y: float


def resize_text_box(box: _Box, handle: Handle, dx: float, dy: float) -> _Box:
    """Resize a text box; dragging the left or top edge keeps the opposite
    edge in place by shifting the box."""

    dx = math.floor(dx + 0.5)
    dy = math.floor(dy + 0.5)
    width, height, x, y = box.width, box.height, box.x, box.y
    if handle.has_left:
        width = max(MIN_TEXT_WIDTH, box.width - dx)
        x = box.x + (box.width - width)
    elif handle.has_right:
        width = max(MIN_TEXT_WIDTH, box.width + dx)
    if handle.has_top:
        height = max(MIN_TEXT_HEIGHT, box.height - dy)
        y = box.y + (box.height - height)
    elif handle.has_bottom:
        height = max(MIN_TEXT_HEIGHT, box.height + dy)
    return _Box(width, height, x, y)


class TextEditTool(BaseTool):
    """Edit the text of one layer and drag its box handles.

    Typed text is shown on the layer right away; it is handed over through
    ``text_committed`` before a resize starts and when the tool goes away.
    Clicking outside the box or pressing Escape asks the editor to leave
    text editing through ``exit_requested``.
    """

    name = "Text"
    icon = "icons/tooltext.png"
    shortcut = None
    category = "draw"

    text_committed = Signal(str, str, str)
    resize_committed = Signal(str, object, object, object, object)
    exit_requested = Signal()

    def __init__(self, editor):
        super().__init__(editor)
        self.cursor = QCursor(Qt.IBeamCursor)
        self.layer: Layer | None = None
        self.committed_text = ""

    # ------------------------------------------------------------------
    def begin(self, layer_id: str):
        layer = self.editor.project.layer(layer_id)
        if layer.basic_text is None:
            raise ValueError(f"Layer {layer_id} is not a text layer")
        self.commit_text()
        self.layer = layer
        self.committed_text = layer.basic_text.content
        self.changed.emit()

    @property
    def text(self) -> str:
        if self.layer is None or self.layer.basic_text is None:
            return ""
        return self.layer.basic_text.content

    def set_text(self, text: str):
        """Replace the draft text, e.g. from a host text widget."""

        if self.layer is None:
            return
        self.layer.basic_text = replace(self.layer.basic_text, content=text)
        self.changed.emit()

    def commit_text(self):
        layer = self.layer
        if layer is None or layer.basic_text is None:
            return
        new_text = layer.basic_text.content
        if new_text == self.committed_text:
            return
        old_text = self.committed_text
        layer.basic_text = replace(layer.basic_text, content=old_text)
        self.committed_text = new_text
        self.text_committed.emit(layer.id, old_text, new_text)

    # ------------------------------------------------------------------
    def _box_rect(self) -> QRectF:
        layer = self.layer
        t = layer.transform
        return QRectF(t.translate_x, t.translate_y, layer.width, layer.height)

    def _handle_at(self, event: PointerEvent) -> Handle | None:
        points = {h: self.to_screen(p) for h, p in handle_points(self._box_rect()).items()}
        return hit_test(points, event.screen_pos, self.config.handle_radius)

    def mousePressEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton or self.layer is None:
            return
        handle = self._handle_at(event)
        if handle is None:
            if not self._box_rect().contains(event.pos):
                self.exit_requested.emit()
            return
        if self.layer.locked:
            self.warn("Active layer is locked and cannot be resized.")
            return
        self.commit_text()
        t = self.layer.transform
        box = _Box(self.layer.width, self.layer.height, t.translate_x, t.translate_y)
        self.state = Dragging(handle, QPointF(event.pos), box)

    def mouseMoveEvent(self, event: PointerEvent):
        if not isinstance(self.state, Dragging):
            if self.layer is not None:
                handle = self._handle_at(event)
                self.cursor.setShape(cursor_for_handle(handle) if handle else Qt.IBeamCursor)
            return
        box = resize_text_box(
            self.state.snapshot,
            self.state.handle,
            event.pos.x() - self.state.start.x(),
            event.pos.y() - self.state.start.y(),
        )
        self._apply_box(box)
        self.changed.emit()

    def mouseReleaseEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton or not isinstance(self.state, Dragging):
            return
        old: _Box = self.state.snapshot
        layer = self.layer
        new = _Box(layer.width, layer.height, layer.transform.translate_x, layer.transform.translate_y)
        self._apply_box(old)
        self.state = IDLE
        if new != old:
            self.resize_committed.emit(
                layer.id,
                (old.width, old.height),
                (old.x, old.y),
                (new.width, new.height),
                (new.x, new.y),
            )
        self.changed.emit()

    def pointerCancelEvent(self):
        if isinstance(self.state, Dragging):
            self._apply_box(self.state.snapshot)
        super().pointerCancelEvent()

    def keyPressEvent(self, event: KeyEvent):
        if self.layer is None:
            return
        if event.key == Qt.Key_Escape:
            self.exit_requested.emit()
        elif event.key == Qt.Key_Backspace:
            self.set_text(self.text[:-1])
        elif event.key in (Qt.Key_Return, Qt.Key_Enter):
            self.set_text(self.text + "\n")
        elif event.text and event.text.isprintable():
            self.set_text(self.text + event.text)

    def deactivate(self):
        if isinstance(self.state, Dragging):
            self._apply_box(self.state.snapshot)
        super().deactivate()
        self.commit_text()
        self.layer = None

    def _apply_box(self, box: _Box):
        self.layer.width = box.width
        self.layer.height = box.height
        self.layer.transform = self.layer.transform.with_translation(box.x, box.y)

    # ------------------------------------------------------------------
    def draw_overlay(self, painter: QPainter):
        if self.layer is None:
            return
        rect = self._box_rect()
        painter.save()
        pen = QPen(QColor(66, 133, 244), 2)
        pen.setCosmetic(True)
        painter.setPen(pen)
        painter.setBrush(Qt.NoBrush)
        painter.drawRect(QRectF(self.to_screen(rect.topLeft()), self.to_screen(rect.bottomRight())))
        outline = QPen(QColor(80, 80, 80))
        outline.setCosmetic(True)
        painter.setPen(outline)
        painter.setBrush(QColor(255, 255, 255))
        size = self.config.handle_radius
        for point in handle_points(rect).values():
            center = self.to_screen(point)
            painter.drawRect(QRectF(center.x() - size / 2, center.y() - size / 2, size, size))
        painter.restore()
