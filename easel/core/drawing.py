"""Pixel editing primitives used by the paint, erase, fill and delete actions.

Every function works on a layer's RGBA buffer in the layer's own pixel
space. Callers capture a snapshot beforehand so the edit can be recorded as
a :class:`~easel.core.command.PaintLayer` command.
"""

from __future__ import annotations

import numpy as np
from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import QColor, QPainter, QPen

from easel.core.layer import Layer
from easel.core.raster import from_qimage, parse_color, to_qcolor, to_qimage
from easel.core.selection_mask import SelectionMask
from easel.core.transform import Transform, rotate_vector


def stroke_segment(
    buffer: np.ndarray,
    start: QPointF,
    end: QPointF,
    *,
    color: str,
    width: float,
    erase: bool = False,
) -> None:
    """Draw a round capped line from ``start`` to ``end`` into ``buffer``.

    With ``erase`` set the stroke removes coverage instead of adding colour.
    """

    image = to_qimage(buffer)
    if image.isNull():
        return
    painter = QPainter(image)
    painter.setRenderHint(QPainter.Antialiasing)
    if erase:
        painter.setCompositionMode(QPainter.CompositionMode_DestinationOut)
        pen_color = QColor(0, 0, 0, 255)
    else:
        pen_color = to_qcolor(color)
    pen = QPen(pen_color, width, Qt.SolidLine, Qt.RoundCap, Qt.RoundJoin)
    painter.setPen(pen)
    if start == end:
        painter.drawPoint(start)
    else:
        painter.drawLine(start, end)
    painter.end()
    buffer[...] = from_qimage(image)


def _canvas_coordinates(
    width: int, height: int, transform: Transform
) -> tuple[np.ndarray, np.ndarray]:
    """Nearest canvas pixel for every layer pixel."""

    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    cx, cy = rotate_vector(xs * transform.scale_x, ys * transform.scale_y, transform.rotation)
    cx = np.floor(cx + transform.translate_x + 0.5).astype(np.int64)
    cy = np.floor(cy + transform.translate_y + 0.5).astype(np.int64)
    return cx, cy


def _mask_coverage(layer: Layer, mask: SelectionMask) -> np.ndarray:
    """Mask intensity under every layer pixel, ``0`` outside the canvas."""

    cx, cy = _canvas_coordinates(layer.width, layer.height, layer.transform)
    inside = (cx >= 0) & (cx < mask.width) & (cy >= 0) & (cy < mask.height)
    coverage = np.zeros((layer.height, layer.width), dtype=np.uint8)
    coverage[inside] = mask.values[cy[inside], cx[inside]]
    return coverage


def bucket_fill(
    buffer: np.ndarray,
    layer: Layer,
    mask: SelectionMask | None,
    color: str,
) -> np.ndarray:
    """Return a copy of ``buffer`` filled with ``color``.

    Without a selection the whole layer is filled. Otherwise every pixel is
    blended towards the fill colour by the mask intensity found at its
    position on the canvas.
    """

    fill = np.array(parse_color(color), dtype=np.float64)
    if mask is None or mask.is_empty():
        result = np.empty_like(buffer)
        result[...] = fill.astype(np.uint8)
        return result

    coverage = _mask_coverage(layer, mask)
    selected = coverage > 0
    weight = (coverage[selected].astype(np.float64) / 255.0)[:, None]
    old = buffer[selected].astype(np.float64)
    blended = np.floor(old * (1.0 - weight) + fill * weight + 0.5)
    result = buffer.copy()
    result[selected] = np.clip(blended, 0, 255).astype(np.uint8)
    return result


def delete_masked_area(buffer: np.ndarray, layer: Layer, mask: SelectionMask) -> np.ndarray:
    """Return a copy of ``buffer`` with alpha reduced by the mask intensity."""

    coverage = _mask_coverage(layer, mask)
    result = buffer.copy()
    alpha = result[..., 3].astype(np.int16) - coverage.astype(np.int16)
    result[..., 3] = np.clip(alpha, 0, 255).astype(np.uint8)
    return result
