from __future__ import annotations

import numpy as np
from PySide6.QtCore import QPointF
from PySide6.QtGui import QFont, QFontMetricsF, QImage, QPainter

from easel.core.layer import BasicText, Layer
from easel.core.raster import from_qimage, new_buffer, to_qcolor


# Horizontal room kept free when wrapping lines.
TEXT_PADDING = 20

_WEIGHTS = {
    "normal": QFont.Normal,
    "bold": QFont.Bold,
    "bolder": QFont.ExtraBold,
    "lighter": QFont.Light,
}


def _font_weight(weight: str) -> QFont.Weight:
    if weight in _WEIGHTS:
        return _WEIGHTS[weight]
    try:
        numeric = int(weight)
    except ValueError:
        return QFont.Normal
    return QFont.Bold if numeric >= 600 else QFont.Normal


def build_font(text: BasicText) -> QFont:
    font = QFont(text.font_family)
    font.setPixelSize(max(1, int(round(text.font_size))))
    font.setWeight(_font_weight(text.font_weight))
    font.setItalic(text.font_style in ("italic", "oblique"))
    if text.letter_spacing:
        font.setLetterSpacing(QFont.AbsoluteSpacing, text.letter_spacing)
    return font


def _split_long_word(word: str, metrics: QFontMetricsF, max_width: float) -> list[str]:
    pieces: list[str] = []
    current = ""
    for char in word:
        candidate = current + char
        if current and metrics.horizontalAdvance(candidate) > max_width:
            pieces.append(current)
            current = char
        else:
            current = candidate
    if current:
        pieces.append(current)
    return pieces


def wrap_text(text: str, metrics: QFontMetricsF, max_width: float) -> list[str]:
    """Greedily wrap ``text`` at spaces so each line fits ``max_width``.

    A single word wider than ``max_width`` is broken between characters.
    """

    if max_width <= 0:
        return [text]

    lines: list[str] = []
    current = ""
    for word in text.split(" "):
        if metrics.horizontalAdvance(word) > max_width:
            pieces = _split_long_word(word, metrics, max_width)
            if current:
                lines.append(current)
            lines.extend(pieces[:-1])
            current = pieces[-1] if pieces else ""
            continue
        candidate = f"{current} {word}" if current else word
        if current and metrics.horizontalAdvance(candidate) > max_width:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines or [""]


def layout_lines(layer: Layer, padding: int = TEXT_PADDING) -> list[str]:
    """Return the wrapped lines of a text layer in drawing order."""

    if layer.basic_text is None:
        raise ValueError("Layer does not have text to rasterize")
    metrics = QFontMetricsF(build_font(layer.basic_text))
    lines: list[str] = []
    for paragraph in layer.basic_text.content.split("\n"):
        lines.extend(wrap_text(paragraph, metrics, layer.width - padding))
    return lines


def rasterize_text_layer(layer: Layer, padding: int = TEXT_PADDING) -> np.ndarray:
    """Render a text layer into a new buffer of the layer's size."""

    if layer.basic_text is None:
        raise ValueError("Layer does not have text to rasterize")
    if layer.width <= 0 or layer.height <= 0:
        return new_buffer(layer.width, layer.height)

    text = layer.basic_text
    font = build_font(text)
    metrics = QFontMetricsF(font)
    line_step = text.font_size * text.line_height

    image = QImage(layer.width, layer.height, QImage.Format_RGBA8888)
    image.fill(0)
    painter = QPainter(image)
    painter.setRenderHint(QPainter.TextAntialiasing)
    painter.setFont(font)
    painter.setPen(to_qcolor(text.color))

    y = 0.0
    for line in layout_lines(layer, padding):
        advance = metrics.horizontalAdvance(line)
        if text.text_align == "center":
            x = layer.width / 2 - advance / 2
        elif text.text_align == "right":
            x = layer.width - advance
        else:
            x = 0.0
        # Lines are positioned by their top edge.
        painter.drawText(QPointF(x, y + metrics.ascent()), line)
        y += line_step
    painter.end()
    return from_qimage(image)
