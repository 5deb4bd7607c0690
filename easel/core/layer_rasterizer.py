"""Compositing of layers onto the canvas.

Layers are drawn from the bottom of the stack (highest index) to the top
(index ``0``). Each visible layer is drawn with its opacity, transform and
optional drop shadow.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

import numpy as np
from PIL import Image, ImageFilter
from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import QImage, QPainter

from easel.core.layer import Layer
from easel.core.project import Project
from easel.core.raster import from_pil, from_qimage, new_buffer, to_pil, to_qcolor, to_qimage
from easel.core.text_rasterizer import TEXT_PADDING, rasterize_text_layer
from easel.core.transform import to_qtransform


logger = logging.getLogger(__name__)


def layer_opacity(layer: Layer) -> float:
    return max(0.0, min(1.0, layer.opacity / 100.0))


def source_image(layer: Layer, buffer: np.ndarray | None, text_padding: int = TEXT_PADDING) -> QImage:
    """Return the untransformed pixels of ``layer`` as a ``QImage``."""

    if layer.is_text:
        return to_qimage(rasterize_text_layer(layer, text_padding))
    if buffer is None:
        return QImage()
    return to_qimage(buffer)


def _shadow_margin(layer: Layer) -> int:
    shadow = layer.shadow
    spread = 3 * shadow.blur / 2
    return int(math.ceil(spread + max(abs(shadow.offset_x), abs(shadow.offset_y)))) + 1


def _shadow_image(layer: Layer, source: QImage, width: int, height: int, margin: int) -> QImage:
    """Tinted, blurred silhouette of the transformed layer in canvas space.

    The result is ``margin`` pixels larger than the canvas on every side.
    """

    silhouette = QImage(width + 2 * margin, height + 2 * margin, QImage.Format_ARGB32_Premultiplied)
    silhouette.fill(Qt.transparent)
    painter = QPainter(silhouette)
    try:
        painter.setRenderHint(QPainter.SmoothPixmapTransform, True)
        painter.translate(margin, margin)
        painter.setTransform(to_qtransform(layer.transform), True)
        painter.drawImage(0, 0, source)
        painter.resetTransform()
        painter.setCompositionMode(QPainter.CompositionMode_SourceIn)
        painter.fillRect(silhouette.rect(), to_qcolor(layer.shadow.color))
    finally:
        painter.end()

    if layer.shadow.blur <= 0:
        return silhouette
    blurred = to_pil(from_qimage(silhouette)).filter(
        ImageFilter.GaussianBlur(radius=layer.shadow.blur / 2)
    )
    return to_qimage(from_pil(blurred))


def draw_layer(
    painter: QPainter,
    layer: Layer,
    buffer: np.ndarray | None,
    width: int,
    height: int,
    *,
    text_padding: int = TEXT_PADDING,
) -> None:
    """Draw ``layer`` with ``painter``, whose coordinates are canvas pixels."""

    source = source_image(layer, buffer, text_padding)
    if source.isNull():
        return

    painter.save()
    try:
        painter.setOpacity(layer_opacity(layer))
        painter.setRenderHint(QPainter.SmoothPixmapTransform, True)
        if layer.shadow is not None:
            margin = _shadow_margin(layer)
            shadow = _shadow_image(layer, source, width, height, margin)
            painter.drawImage(
                QPointF(layer.shadow.offset_x - margin, layer.shadow.offset_y - margin),
                shadow,
            )
        painter.setTransform(to_qtransform(layer.transform), True)
        painter.drawImage(0, 0, source)
    finally:
        painter.restore()


def rasterize_layer_to_canvas(
    layer: Layer,
    buffer: np.ndarray | None,
    width: int,
    height: int,
    *,
    text_padding: int = TEXT_PADDING,
) -> np.ndarray:
    """Render a single layer into a new canvas sized buffer."""

    if width <= 0 or height <= 0:
        return new_buffer(width, height)
    image = QImage(width, height, QImage.Format_RGBA8888)
    image.fill(Qt.transparent)
    painter = QPainter(image)
    try:
        draw_layer(painter, layer, buffer, width, height, text_padding=text_padding)
    finally:
        painter.end()
    return from_qimage(image)


def paint_project(painter: QPainter, project: Project, *, text_padding: int = TEXT_PADDING) -> None:
    for layer in reversed(project.layers):
        if not layer.visible:
            continue
        draw_layer(
            painter,
            layer,
            project.buffer(layer.id),
            project.width,
            project.height,
            text_padding=text_padding,
        )


def render_project(project: Project, *, text_padding: int = TEXT_PADDING) -> np.ndarray:
    """Flatten every visible layer into one canvas sized buffer."""

    if project.width <= 0 or project.height <= 0:
        return new_buffer(project.width, project.height)
    image = QImage(project.width, project.height, QImage.Format_RGBA8888)
    image.fill(Qt.transparent)
    painter = QPainter(image)
    try:
        paint_project(painter, project, text_padding=text_padding)
    finally:
        painter.end()
    return from_qimage(image)


def export_image(
    project: Project,
    path: str | Path,
    format: str | None = None,
    quality: int | None = None,
) -> None:
    """Write the flattened canvas to ``path`` using Pillow.

    Formats without an alpha channel are flattened onto the project's
    background colour first.
    """

    image = to_pil(render_project(project))
    fmt = (format or Path(path).suffix.lstrip(".") or "PNG").upper()
    if fmt == "JPG":
        fmt = "JPEG"
    if fmt in ("JPEG", "BMP"):
        background = Image.new("RGBA", image.size, project.settings.background_color)
        image = Image.alpha_composite(background, image).convert("RGB")

    options: dict[str, object] = {}
    if quality is not None and fmt in ("JPEG", "WEBP"):
        options["quality"] = int(quality)
    image.save(path, format=fmt, **options)
    logger.info("Exported %s (%dx%d) to %s", project.metadata.name, project.width, project.height, path)
