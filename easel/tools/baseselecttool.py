from __future__ import annotations

import math

import numpy as np
from PySide6.QtCore import QPointF, Qt, Signal
from PySide6.QtGui import QColor, QCursor

from easel.core.selection_mask import SelectionMode, selection_mode_for
from easel.tools.basetool import BaseTool, KeyEvent, PointerEvent


MODE_COLORS = {
    SelectionMode.REPLACE: QColor(66, 133, 244),
    SelectionMode.ADD: QColor(52, 168, 83),
    SelectionMode.SUBTRACT: QColor(234, 67, 53),
    SelectionMode.INTERSECT: QColor(251, 188, 5),
}


class BaseSelectTool(BaseTool):
    """Common plumbing for the mask selection tools.

    The combine mode follows the held modifiers: shift adds, ctrl subtracts,
    both intersect. Finished masks are emitted through ``mask_committed`` as
    a canvas sized ``uint8`` array together with the mode.
    """

    category = "select"

    mask_committed = Signal(object, object)

    def __init__(self, editor):
        super().__init__(editor)
        self.cursor = QCursor(Qt.CrossCursor)
        self.mode = SelectionMode.REPLACE

    @property
    def mode_color(self) -> QColor:
        return MODE_COLORS[self.mode]

    def _update_mode(self, modifiers):
        shift = bool(modifiers & Qt.ShiftModifier)
        ctrl = bool(modifiers & (Qt.ControlModifier | Qt.MetaModifier))
        mode = selection_mode_for(shift, ctrl)
        if mode is not self.mode:
            self.mode = mode
            self.changed.emit()

    def keyPressEvent(self, event: KeyEvent):
        self._update_mode(event.modifiers)

    def keyReleaseEvent(self, event: KeyEvent):
        self._update_mode(event.modifiers)

    def canvas_point(self, event: PointerEvent) -> QPointF:
        """Pointer position rounded to whole pixels and clamped to the canvas."""

        project = self.editor.project
        x = math.floor(event.pos.x() + 0.5)
        y = math.floor(event.pos.y() + 0.5)
        return QPointF(
            max(0, min(x, project.width)),
            max(0, min(y, project.height)),
        )

    def commit_mask(self, values: np.ndarray):
        self.mask_committed.emit(values, self.mode)
