from unittest.mock import Mock

import pytest
from PySide6.QtCore import QPointF, Qt

from easel.core.document_controller import EditorController
from easel.core.layer import BasicText
from easel.core.project import Project
from easel.core.settings_controller import EditorConfig
from easel.core.transform import Transform
from easel.core.viewport import Viewport
from easel.tools import ToolRegistry, get_tools
from easel.tools.basetool import BaseTool, KeyEvent, PointerEvent
from easel.tools.movetool import MoveTool
from easel.tools.selecttool import layers_at
from easel.tools.textedittool import MIN_TEXT_WIDTH, resize_text_box, _Box
from easel.tools.handles import Handle


def pointer(x, y, button=Qt.LeftButton):
    return PointerEvent(QPointF(x, y), QPointF(x, y), button)


@pytest.fixture
def controller(qapp):
    project = Project.create(100, 80)
    bottom = project.add_raster_layer("Bottom")
    top = project.add_raster_layer("Top")
    top.width, top.height = 40, 30
    project.layer_buffers[top.id] = project.layer_buffers[top.id][:30, :40].copy()
    top.transform = Transform(translate_x=10, translate_y=10)
    return EditorController(project=project)


# Registry --------------------------------------------------------------


def test_builtin_tools_are_registered():
    """Test that every built in tool is discovered."""
    names = {entry.name for entry in get_tools()}
    assert {
        "Crop",
        "Eraser",
        "Move",
        "Paint",
        "Pan",
        "Resize Canvas",
        "Select",
        "Select Color",
        "Select Lasso",
        "Select Polygon",
        "Select Rectangle",
        "Text",
        "Transform",
    } <= names


def test_registry_rejects_non_tools():
    """Test that only BaseTool subclasses can be registered."""
    registry = ToolRegistry()
    with pytest.raises(TypeError):
        registry.register_tool(object)
    registry.register_tool(MoveTool)
    registry.register_tool(MoveTool)
    assert len(registry.get_tools()) == 1
    assert registry.get_tool("Move") is MoveTool
    with pytest.raises(KeyError):
        registry.get_tool("Missing")


def test_registry_skips_nameless_tools():
    """Test that abstract helpers without a name are ignored."""

    class Helper(BaseTool):
        pass

    registry = ToolRegistry()
    registry.register_tool(Helper)
    assert registry.get_tools() == []


def test_registry_keeps_first_tool_per_name(caplog):
    """Test that a second tool under a taken name is ignored with a warning."""

    class OtherMove(BaseTool):
        name = "Move"

    registry = ToolRegistry()
    registry.register_tool(MoveTool)
    registry.register_tool(OtherMove)
    entry = registry.get_tools()[0]
    assert entry.tool_class is MoveTool
    assert entry.shortcut == MoveTool.shortcut
    assert "is taken" in caplog.text


def test_tool_with_mock_editor(qapp):
    """Test that tools only need a small editor surface."""
    editor = Mock()
    editor.config = EditorConfig()
    editor.viewport = Viewport(editor.config)
    editor.active_layer = None
    tool = MoveTool(editor)
    warnings = []
    tool.warning.connect(warnings.append)
    tool.mousePressEvent(pointer(5, 5))
    assert warnings == ["No active layer to move."]


# Move ------------------------------------------------------------------


def test_move_tool_commits_total_offset(controller):
    """Test that a move drag is one command with the summed offset."""
    controller.set_tool("Move")
    layer = controller.active_layer
    controller.mouse_press(pointer(10, 10))
    controller.mouse_move(pointer(15, 12))
    controller.mouse_move(pointer(20, 14))
    assert layer.transform.translate_x == 20
    controller.mouse_release(pointer(20, 14))
    assert len(controller.undo_manager.undo_stack) == 1
    assert (layer.transform.translate_x, layer.transform.translate_y) == (20, 14)
    controller.undo()
    assert (layer.transform.translate_x, layer.transform.translate_y) == (10, 10)


def test_move_tool_cancel_commits(controller):
    """Test that a cancelled move keeps the distance covered."""
    controller.set_tool("Move")
    controller.mouse_press(pointer(10, 10))
    controller.mouse_move(pointer(13, 10))
    controller.pointer_cancel()
    assert controller.active_layer.transform.translate_x == 13
    assert len(controller.undo_manager.undo_stack) == 1


def test_move_tool_click_is_not_an_edit(controller):
    """Test that pressing and releasing in place records nothing."""
    controller.set_tool("Move")
    controller.mouse_press(pointer(10, 10))
    controller.mouse_release(pointer(10, 10))
    assert not controller.undo_manager.can_undo


def test_move_tool_locked_warns(controller, qtbot):
    """Test that locked layers stay put."""
    controller.set_tool("Move")
    controller.active_layer.locked = True
    with qtbot.waitSignal(controller.warning) as blocker:
        controller.mouse_press(pointer(10, 10))
    assert blocker.args == ["Active layer is locked and cannot be moved."]


# Pan -------------------------------------------------------------------


def test_pan_tool_scrolls_view(controller):
    """Test that dragging scrolls against the pointer movement."""
    controller.set_tool("Pan")
    controller.mouse_press(pointer(100, 100))
    controller.mouse_move(pointer(90, 95))
    controller.mouse_move(pointer(80, 95))
    controller.mouse_release(pointer(80, 95))
    assert (controller.viewport.scroll_x, controller.viewport.scroll_y) == (20, 5)


def test_alt_switches_to_pan_temporarily(controller, qtbot):
    """Test that holding Alt pans and releasing it restores the tool."""
    controller.set_tool("Move")
    with qtbot.waitSignal(controller.tool_changed) as blocker:
        controller.key_press(KeyEvent(Qt.Key_Alt, Qt.AltModifier))
    assert blocker.args == ["Pan"]
    controller.key_press(KeyEvent(Qt.Key_Alt, Qt.AltModifier))
    controller.key_release(KeyEvent(Qt.Key_Alt))
    assert controller.current_tool.name == "Move"


# Select ----------------------------------------------------------------


def test_layers_at_lists_topmost_first(controller):
    """Test the hit test used by the select tool."""
    names = [layer.name for layer in layers_at(controller.project, QPointF(20, 20))]
    assert names == ["Top", "Bottom"]
    names = [layer.name for layer in layers_at(controller.project, QPointF(80, 70))]
    assert names == ["Bottom"]
    controller.project.layers[0].visible = False
    names = [layer.name for layer in layers_at(controller.project, QPointF(20, 20))]
    assert names == ["Bottom"]


def test_select_tool_cycles_through_stack(controller):
    """Test that clicking the same spot again selects the layer below."""
    project = controller.project
    top, bottom = project.layers
    controller.set_active_layer(bottom.id)
    controller.set_tool("Select")
    controller.mouse_press(pointer(20, 20))
    assert controller.active_layer_id == top.id
    controller.mouse_press(pointer(21, 20))
    assert controller.active_layer_id == bottom.id
    controller.mouse_press(pointer(20, 21))
    assert controller.active_layer_id == top.id
    controller.mouse_press(pointer(80, 70))
    assert controller.active_layer_id == bottom.id


def test_select_tool_ignores_empty_area(controller):
    """Test that clicking outside every layer keeps the selection."""
    controller.set_tool("Select")
    active = controller.active_layer_id
    controller.mouse_press(pointer(500, 500))
    assert controller.active_layer_id == active


# Text ------------------------------------------------------------------


@pytest.fixture
def text_controller(controller):
    controller.add_text_layer(BasicText(content="Hi"), x=10, y=10)
    controller.set_tool("Select")
    controller.mouse_double_click(pointer(50, 50))
    return controller


def test_double_click_starts_text_editing(text_controller):
    """Test that double clicking a text layer opens the text tool on it."""
    tool = text_controller.current_tool
    assert tool.name == "Text"
    assert tool.layer is text_controller.active_layer
    assert tool.text == "Hi"


def test_typing_commits_one_edit_on_exit(text_controller):
    """Test that typed text becomes a single undoable edit when leaving."""
    layer = text_controller.active_layer
    for char in " there":
        text_controller.key_press(KeyEvent(0, Qt.NoModifier, char))
    text_controller.key_press(KeyEvent(Qt.Key_Backspace))
    text_controller.key_press(KeyEvent(Qt.Key_Return))
    assert layer.basic_text.content == "Hi ther\n"
    stack_size = len(text_controller.undo_manager.undo_stack)

    text_controller.key_press(KeyEvent(Qt.Key_Escape))
    assert text_controller.current_tool.name == "Select"
    assert len(text_controller.undo_manager.undo_stack) == stack_size + 1
    assert layer.basic_text.content == "Hi ther\n"
    text_controller.undo()
    assert layer.basic_text.content == "Hi"


def test_click_outside_box_leaves_editing(text_controller):
    """Test that clicking away ends text editing."""
    text_controller.mouse_press(pointer(400, 200))
    assert text_controller.current_tool.name == "Select"


def test_resize_text_box_by_handle(text_controller):
    """Test that dragging the right edge handle widens the box in one command."""
    layer = text_controller.active_layer
    # Right edge centre of the 300x100 box placed at (10, 10).
    text_controller.mouse_press(pointer(310, 60))
    text_controller.mouse_move(pointer(330.4, 60))
    assert layer.width == 320
    text_controller.mouse_release(pointer(330.4, 60))
    assert (layer.width, layer.height) == (320, 100)
    text_controller.undo()
    assert (layer.width, layer.height) == (300, 100)


def test_resize_locked_text_box_warns(text_controller, qtbot):
    """Test that a locked text layer cannot be resized."""
    text_controller.active_layer.locked = True
    with qtbot.waitSignal(text_controller.warning) as blocker:
        text_controller.mouse_press(pointer(310, 60))
    assert blocker.args == ["Active layer is locked and cannot be resized."]


def test_resize_text_box_geometry():
    """Test left and top drags keep the opposite edge and the minimum size."""
    box = _Box(100, 40, 10.0, 20.0)
    moved = resize_text_box(box, Handle.TOP_LEFT, 10.4, 5.5)
    assert moved == _Box(90, 34, 20.0, 26.0)
    tiny = resize_text_box(box, Handle.LEFT, 500, 0)
    assert tiny.width == MIN_TEXT_WIDTH
    assert tiny.x + tiny.width == box.x + box.width
