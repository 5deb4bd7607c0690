"""Pixel buffer helpers.

Layer pixels are kept as ``numpy`` arrays of shape ``(height, width, 4)``
holding non-premultiplied RGBA bytes. Qt is used whenever something has to
be painted, Pillow whenever something has to be encoded.
"""

from __future__ import annotations

import numpy as np
from PIL import Image
from PySide6.QtGui import QColor, QImage


def new_buffer(width: int, height: int) -> np.ndarray:
    """Return a fully transparent buffer."""

    return np.zeros((max(0, int(height)), max(0, int(width)), 4), dtype=np.uint8)


def buffer_size(buffer: np.ndarray) -> tuple[int, int]:
    return int(buffer.shape[1]), int(buffer.shape[0])


def snapshot(buffer: np.ndarray) -> np.ndarray:
    """Return a read-only copy suitable for storing in a command."""

    frozen = np.array(buffer, dtype=np.uint8, copy=True)
    frozen.flags.writeable = False
    return frozen


def parse_color(color: str) -> tuple[int, int, int, int]:
    """Parse ``#RRGGBB`` or ``#RRGGBBAA`` into an RGBA tuple."""

    if not isinstance(color, str) or not color.startswith("#"):
        raise ValueError(f"Unsupported color value: {color!r}")
    digits = color[1:]
    if len(digits) not in (6, 8):
        raise ValueError(f"Unsupported color value: {color!r}")
    try:
        channels = [int(digits[i:i + 2], 16) for i in range(0, len(digits), 2)]
    except ValueError as exc:
        raise ValueError(f"Unsupported color value: {color!r}") from exc
    if len(channels) == 3:
        channels.append(255)
    return tuple(channels)


def to_qcolor(color: str) -> QColor:
    r, g, b, a = parse_color(color)
    return QColor(r, g, b, a)


def to_qimage(buffer: np.ndarray) -> QImage:
    """Copy ``buffer`` into a new ``QImage`` (Format_RGBA8888)."""

    data = np.ascontiguousarray(buffer, dtype=np.uint8)
    height, width = data.shape[:2]
    if width == 0 or height == 0:
        return QImage()
    image = QImage(data.data, width, height, width * 4, QImage.Format_RGBA8888)
    # The QImage above borrows ``data``; detach before it goes out of scope.
    return image.copy()


def from_qimage(image: QImage) -> np.ndarray:
    if image.isNull():
        return new_buffer(0, 0)
    if image.format() != QImage.Format_RGBA8888:
        image = image.convertToFormat(QImage.Format_RGBA8888)
    width = image.width()
    height = image.height()
    rows = np.frombuffer(image.constBits(), dtype=np.uint8).reshape(
        height, image.bytesPerLine()
    )
    return rows[:, : width * 4].reshape(height, width, 4).copy()


def to_pil(buffer: np.ndarray) -> Image.Image:
    return Image.fromarray(np.ascontiguousarray(buffer, dtype=np.uint8))


def from_pil(image: Image.Image) -> np.ndarray:
    return np.array(image.convert("RGBA"), dtype=np.uint8)
