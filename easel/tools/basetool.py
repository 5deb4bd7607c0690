from __future__ import annotations

import logging
from dataclasses import dataclass

from PySide6.QtCore import QObject, QPointF, Qt, Signal
from PySide6.QtGui import QCursor, QKeyEvent, QMouseEvent, QPainter

from easel.tools.handles import IDLE, Dragging, Idle


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PointerEvent:
    """Pointer input delivered to tools.

    ``pos`` is in canvas pixels, ``screen_pos`` in widget pixels.
    """

    pos: QPointF
    screen_pos: QPointF
    button: Qt.MouseButton = Qt.LeftButton
    modifiers: Qt.KeyboardModifier = Qt.NoModifier

    @property
    def shift(self) -> bool:
        return bool(self.modifiers & Qt.ShiftModifier)

    @property
    def ctrl(self) -> bool:
        return bool(self.modifiers & (Qt.ControlModifier | Qt.MetaModifier))

    @classmethod
    def from_qt(cls, event: QMouseEvent, canvas_pos: QPointF) -> "PointerEvent":
        return cls(
            pos=QPointF(canvas_pos),
            screen_pos=QPointF(event.position()),
            button=event.button(),
            modifiers=event.modifiers(),
        )


@dataclass(frozen=True, slots=True)
class KeyEvent:
    key: int
    modifiers: Qt.KeyboardModifier = Qt.NoModifier
    text: str = ""

    @property
    def shift(self) -> bool:
        return bool(self.modifiers & Qt.ShiftModifier)

    @classmethod
    def from_qt(cls, event: QKeyEvent) -> "KeyEvent":
        return cls(key=event.key(), modifiers=event.modifiers(), text=event.text())


class BaseTool(QObject):
    """Abstract base class for all canvas tools.

    Tools may preview a gesture on the project but put it back before
    handing the finished edit to the editor through their own commit
    signals. Problems are reported through ``warning``. ``changed`` asks the
    view to repaint.
    """

    name = None
    icon = None
    shortcut = None
    category = None
    warning = Signal(str)
    changed = Signal()

    def __init__(self, editor):
        super().__init__()
        self.editor = editor
        self.cursor = QCursor(Qt.ArrowCursor)
        self.state: Idle | Dragging = IDLE

    @property
    def config(self):
        return self.editor.config

    def mousePressEvent(self, event: PointerEvent):
        pass

    def mouseMoveEvent(self, event: PointerEvent):
        pass

    def mouseReleaseEvent(self, event: PointerEvent):
        pass

    def mouseDoubleClickEvent(self, event: PointerEvent):
        pass

    def pointerCancelEvent(self):
        """The pointer left the canvas or the gesture was interrupted."""
        self.state = IDLE
        self.changed.emit()

    def keyPressEvent(self, event: KeyEvent):
        pass

    def keyReleaseEvent(self, event: KeyEvent):
        pass

    def activate(self):
        """Called when the tool becomes active."""
        pass

    def deactivate(self):
        """Called when the tool is switched."""
        self.state = IDLE

    def draw_overlay(self, painter: QPainter):
        """Called with a painter in screen coordinates when the view paints."""
        pass

    # Helpers -------------------------------------------------------------
    def warn(self, message: str):
        logger.info("%s: %s", self.name, message)
        self.warning.emit(message)

    def to_screen(self, point: QPointF) -> QPointF:
        return self.editor.viewport.canvas_to_screen(point)
