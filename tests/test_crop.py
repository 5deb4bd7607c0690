import numpy as np
import pytest
from PySide6.QtCore import QPointF, QRect, QRectF, Qt

from easel.core.document_controller import EditorController
from easel.core.layer import BasicText
from easel.tools.basetool import KeyEvent, PointerEvent


def pointer(x, y, modifiers=Qt.NoModifier):
    # Zoom 1 and no scroll: canvas and screen coordinates coincide.
    return PointerEvent(QPointF(x, y), QPointF(x, y), Qt.LeftButton, modifiers)


def drag(controller, start, end):
    controller.mouse_press(pointer(*start))
    controller.mouse_move(pointer(*end))
    controller.mouse_release(pointer(*end))


@pytest.fixture
def controller(qapp):
    controller = EditorController()
    controller.new_project(200, 200)
    rng = np.random.default_rng(7)
    layer = controller.active_layer
    controller.project.layer_buffers[layer.id][...] = rng.integers(
        0, 256, size=(200, 200, 4), dtype=np.uint8
    )
    controller.set_tool("Crop")
    return controller


def test_crop_tool_starts_at_canvas_bounds(controller):
    """Test that the crop rectangle covers the canvas when activated."""
    tool = controller.tools["Crop"]
    assert tool.rect == QRectF(0, 0, 200, 200)


def test_crop_by_dragging_handles(controller):
    """Test cropping the active layer by dragging two corners and double clicking."""
    layer = controller.active_layer
    original = controller.project.buffer(layer.id).copy()

    drag(controller, (200, 200), (120, 120))
    drag(controller, (0, 0), (20, 20))
    assert controller.tools["Crop"].rounded_rect() == QRect(20, 20, 100, 100)

    controller.mouse_double_click(pointer(50, 50))

    assert (layer.width, layer.height) == (100, 100)
    assert (layer.transform.translate_x, layer.transform.translate_y) == (20, 20)
    assert (controller.project.width, controller.project.height) == (200, 200)
    assert controller.project.buffer(layer.id).tobytes() == original[20:120, 20:120].tobytes()


def test_crop_undo_redo_is_byte_exact(controller):
    """Test that undoing a crop restores the original pixels exactly."""
    layer = controller.active_layer
    original = controller.project.buffer(layer.id).copy()
    controller.tools["Crop"].rect = QRectF(20, 20, 100, 100)

    controller.key_press(KeyEvent(Qt.Key_Return))
    cropped = controller.project.buffer(layer.id).copy()

    controller.undo()
    assert (layer.width, layer.height) == (200, 200)
    assert controller.project.buffer(layer.id).tobytes() == original.tobytes()

    controller.redo()
    assert controller.project.buffer(layer.id).tobytes() == cropped.tobytes()


def test_crop_moves_rectangle_when_not_on_handle(controller):
    """Test that dragging inside the rectangle moves it."""
    tool = controller.tools["Crop"]
    tool.rect = QRectF(20, 20, 100, 100)
    drag(controller, (70, 70), (80, 60))
    assert tool.rect == QRectF(30, 10, 100, 100)


def test_crop_escape_resets_rectangle(controller):
    """Test that Escape puts the rectangle back on the canvas bounds."""
    tool = controller.tools["Crop"]
    tool.rect = QRectF(20, 20, 100, 100)
    controller.key_press(KeyEvent(Qt.Key_Escape))
    assert tool.rect == QRectF(0, 0, 200, 200)


def test_crop_locked_layer_warns(controller, qtbot):
    """Test that a locked layer is reported and left alone."""
    layer = controller.active_layer
    layer.locked = True
    with qtbot.waitSignal(controller.warning) as blocker:
        controller.key_press(KeyEvent(Qt.Key_Return))
    assert blocker.args == ["Layer is locked."]
    assert (layer.width, layer.height) == (200, 200)
    assert not controller.undo_manager.can_undo


def test_crop_without_layer_warns(controller, qtbot):
    """Test cropping with nothing to crop."""
    controller.set_active_layer(None)
    with qtbot.waitSignal(controller.warning) as blocker:
        controller.key_press(KeyEvent(Qt.Key_Enter))
    assert blocker.args == ["No active layer."]


def test_crop_text_layer_warns(controller, qtbot):
    """Test that text layers must be rasterized before cropping."""
    controller.add_text_layer(BasicText(content="Hi"))
    layer = controller.active_layer
    with qtbot.waitSignal(controller.warning) as blocker:
        controller.key_press(KeyEvent(Qt.Key_Return))
    assert blocker.args == ["Cannot crop a text layer. Please rasterize it first."]
    assert (layer.width, layer.height) == (300, 100)
    assert len(controller.undo_manager.undo_stack) == 1
