"""Colour based selections.

Two flavours of colour picking are supported:

* Contiguous flood fills that collect pixels close to the sampled colour
  using a four-neighbour search.
* Global selections that grab every close pixel in the sampled image.

Both produce an intensity array suitable for :class:`SelectionMask`. Pixels
whose distance to the seed colour is within ``tolerance`` are fully selected.
Pixels that fall within a further :data:`ANTI_ALIAS_BAND` of the tolerance
are selected with a linearly falling intensity, which keeps the selection
border smooth. Only fully selected pixels let a flood fill spread further.
"""

from __future__ import annotations

from collections import deque

import numpy as np
from PySide6.QtCore import QPoint


# Width of the soft border appended to the tolerance, in distance units.
ANTI_ALIAS_BAND = 32


def color_distance(a: tuple[int, int, int, int], b: tuple[int, int, int, int]) -> float:
    """Distance between two RGBA colours, alpha weighted double."""

    dr = a[0] - b[0]
    dg = a[1] - b[1]
    db = a[2] - b[2]
    da = a[3] - b[3]
    return float(np.sqrt(dr * dr + dg * dg + db * db + 2 * da * da))


def distance_map(buffer: np.ndarray, seed: tuple[int, int, int, int]) -> np.ndarray:
    """Per pixel distance of ``buffer`` to ``seed``."""

    diff = buffer.astype(np.float64) - np.asarray(seed, dtype=np.float64)
    weights = np.array([1.0, 1.0, 1.0, 2.0])
    return np.sqrt((diff * diff * weights).sum(axis=2))


def intensity_map(distances: np.ndarray, tolerance: float) -> np.ndarray:
    """Map distances to selection intensities using the anti-alias band."""

    falloff = 255.0 * (1.0 - (distances - tolerance) / ANTI_ALIAS_BAND)
    values = np.where(distances <= tolerance, 255.0, np.floor(falloff + 0.5))
    values = np.where(distances <= tolerance + ANTI_ALIAS_BAND, values, 0.0)
    return np.clip(values, 0, 255).astype(np.uint8)


def clamp_to_buffer(buffer: np.ndarray, point: QPoint) -> tuple[int, int]:
    height, width = buffer.shape[:2]
    x = min(max(int(point.x()), 0), width - 1)
    y = min(max(int(point.y()), 0), height - 1)
    return x, y


def sample_color(buffer: np.ndarray, x: int, y: int) -> tuple[int, int, int, int]:
    r, g, b, a = (int(channel) for channel in buffer[y, x])
    return r, g, b, a


def contiguous_select(buffer: np.ndarray, x: int, y: int, tolerance: float) -> np.ndarray:
    """Flood fill from ``(x, y)`` and return the resulting intensities."""

    height, width = buffer.shape[:2]
    seed = sample_color(buffer, x, y)
    distances = distance_map(buffer, seed)
    intensities = intensity_map(distances, tolerance).ravel().tolist()
    spreads = (distances <= tolerance).ravel().tolist()

    result = np.zeros(width * height, dtype=np.uint8)
    visited = bytearray(width * height)
    queue: deque[tuple[int, int]] = deque([(x, y)])

    while queue:
        px, py = queue.popleft()
        idx = py * width + px
        if visited[idx]:
            continue
        visited[idx] = 1

        value = intensities[idx]
        if value == 0:
            continue
        result[idx] = value

        if not spreads[idx]:
            continue

        if px > 0 and not visited[idx - 1]:
            queue.append((px - 1, py))
        if px + 1 < width and not visited[idx + 1]:
            queue.append((px + 1, py))
        if py > 0 and not visited[idx - width]:
            queue.append((px, py - 1))
        if py + 1 < height and not visited[idx + width]:
            queue.append((px, py + 1))

    return result.reshape(height, width)


def global_select(buffer: np.ndarray, x: int, y: int, tolerance: float) -> np.ndarray:
    """Select every pixel close to the colour at ``(x, y)``."""

    seed = sample_color(buffer, x, y)
    return intensity_map(distance_map(buffer, seed), tolerance)


def build_color_selection_mask(
    buffer: np.ndarray | None,
    point: QPoint,
    *,
    tolerance: float,
    contiguous: bool,
) -> np.ndarray | None:
    """Return intensities for pixels matching ``point``'s colour.

    Parameters
    ----------
    buffer:
        The canvas sized RGBA buffer to sample. ``None`` or an empty buffer
        results in ``None`` being returned.
    point:
        Canvas coordinate of the seed pixel; clamped to the buffer.
    tolerance:
        Distance up to which pixels are fully selected.
    contiguous:
        When ``True`` performs a four-direction flood fill starting from
        ``point``. When ``False`` every close pixel is collected regardless of
        connectivity.
    """

    if buffer is None or buffer.shape[0] == 0 or buffer.shape[1] == 0:
        return None

    x, y = clamp_to_buffer(buffer, point)
    if contiguous:
        return contiguous_select(buffer, x, y, tolerance)
    return global_select(buffer, x, y, tolerance)
