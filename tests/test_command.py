import numpy as np
import pytest
from PySide6.QtCore import QRect

from easel.core import command as commands
from easel.core.command import CommandExecutor
from easel.core.layer import BasicText, Shadow
from easel.core.project import Project, ProjectStateError
from easel.core.selection_mask import rectangle_mask
from easel.core.transform import Transform


def state(project):
    """Everything a command may touch, in comparable form."""
    return (
        project.metadata.to_dict(),
        {
            layer_id: (buffer.shape, buffer.tobytes())
            for layer_id, buffer in project.layer_buffers.items()
        },
        project.selection_mask.values.shape,
        project.selection_mask.values.tobytes(),
    )


def check_round_trip(project, command):
    """Do, undo and redo ``command``; return the executor used."""
    executor = CommandExecutor(project)
    before = state(project)
    executor.do(command)
    after = state(project)
    assert after != before
    executor.undo(command)
    assert state(project) == before
    project.validate()
    executor.do(command)
    assert state(project) == after
    project.validate()
    return executor


@pytest.fixture
def two_layers(project):
    top = project.add_raster_layer("Top")
    project.layer_buffers[top.id][10:20, 10:20] = (0, 0, 255, 255)
    return project


def test_add_raster_layer(project):
    """Test adding a blank layer on top of the stack."""
    cmd = commands.add_raster_layer(project)
    check_round_trip(project, cmd)
    assert project.layers[0].id == cmd.layer.id
    assert project.layers[0].name == "Layer 2"
    assert not project.buffer(cmd.layer.id).any()


def test_add_text_layer(project):
    """Test adding a text layer, which owns no pixel buffer."""
    cmd = commands.add_text_layer(project, BasicText(content="Hello"), x=5, y=6)
    check_round_trip(project, cmd)
    layer = project.layer(cmd.layer.id)
    assert layer.is_text
    assert (layer.width, layer.height) == (300, 100)
    assert (layer.transform.translate_x, layer.transform.translate_y) == (5, 6)
    assert project.buffer(layer.id) is None


def test_add_image_layer_to_empty_project_adopts_size():
    """Test that the first image layer sets the canvas size, and undo restores it."""
    project = Project.create(64, 48)
    pixels = np.full((30, 20, 4), 200, dtype=np.uint8)
    cmd = commands.add_image_layer(project, pixels, "photo")
    executor = check_round_trip(project, cmd)
    assert (project.width, project.height) == (20, 30)
    assert project.selection_mask.values.shape == (30, 20)
    executor.undo(cmd)
    assert (project.width, project.height) == (64, 48)


def test_add_image_layer_keeps_canvas_when_layers_exist(project):
    """Test that later image layers do not resize the canvas."""
    pixels = np.full((10, 10, 4), 7, dtype=np.uint8)
    check_round_trip(project, commands.add_image_layer(project, pixels, "stamp"))
    assert (project.width, project.height) == (64, 48)


def test_duplicate_layer(project):
    """Test that duplicates copy pixels but not identity or lock."""
    source = project.layers[0]
    source.locked = True
    cmd = commands.duplicate_layer(project, source.id)
    check_round_trip(project, cmd)
    copy = project.layers[0]
    assert copy.id != source.id
    assert copy.name == "Background copy"
    assert not copy.locked
    assert np.array_equal(project.buffer(copy.id), project.buffer(source.id))
    assert project.buffer(copy.id) is not project.buffer(source.id)


def test_delete_layer_restores_position_and_pixels(two_layers):
    """Test that undoing a delete puts the layer back where it was."""
    bottom = two_layers.layers[1]
    cmd = commands.delete_layer(two_layers, bottom.id)
    check_round_trip(two_layers, cmd)
    assert len(two_layers.layers) == 1


def test_reorder_layer(two_layers):
    """Test moving a layer within the stack."""
    top_id = two_layers.layers[0].id
    check_round_trip(two_layers, commands.reorder_layer(two_layers, 0, 1))
    assert two_layers.layers[1].id == top_id
    with pytest.raises(IndexError):
        commands.reorder_layer(two_layers, 0, 5)


@pytest.mark.parametrize(
    "factory",
    [
        lambda p, lid: commands.rename_layer(p, lid, "Renamed"),
        lambda p, lid: commands.set_layers_visible(p, [lid], False),
        lambda p, lid: commands.set_layers_locked(p, [lid], True),
        lambda p, lid: commands.set_layer_opacity(p, lid, 40),
        lambda p, lid: commands.update_layer_shadow(p, lid, Shadow("#ff0000", 4, 2, 2)),
        lambda p, lid: commands.transform_layer(lid, Transform(), Transform(rotation=30)),
        lambda p, lid: commands.move_layers(p, [lid], 3.333, -1.005),
    ],
)
def test_layer_property_commands(project, factory):
    """Test that property commands are reversible."""
    check_round_trip(project, factory(project, project.layers[0].id))


def test_set_layer_opacity_is_clamped(project):
    """Test that opacity stays within 0 to 100."""
    layer_id = project.layers[0].id
    assert commands.set_layer_opacity(project, layer_id, 150).new_opacity == 100
    assert commands.set_layer_opacity(project, layer_id, -5).new_opacity == 0


def test_move_layers_rounds_offsets(project):
    """Test that move deltas are rounded to two decimals."""
    layer = project.layers[0]
    cmd = commands.move_layers(project, [layer.id], 3.336, -1.2)
    CommandExecutor(project).do(cmd)
    assert layer.transform.translate_x == pytest.approx(3.34)
    assert layer.transform.translate_y == pytest.approx(-1.2)


def test_crop_layer_at_integer_offset_is_exact(qapp, project):
    """Test that a crop copies pixels unchanged and places the layer at the rect."""
    layer = project.layers[0]
    project.layer_buffers[layer.id][5, 7] = (1, 2, 3, 4)
    cmd = commands.crop_layer(project, layer.id, QRect(5, 4, 10, 8))
    check_round_trip(project, cmd)
    assert (layer.width, layer.height) == (10, 8)
    assert (layer.transform.translate_x, layer.transform.translate_y) == (5, 4)
    assert project.buffer(layer.id)[1, 2].tolist() == [1, 2, 3, 4]


def test_crop_layer_outside_pixels_are_transparent(qapp, project):
    """Test that area outside the layer comes out transparent."""
    layer = project.layers[0]
    cmd = commands.crop_layer(project, layer.id, QRect(60, 40, 10, 10))
    CommandExecutor(project).do(cmd)
    buffer = project.buffer(layer.id)
    assert buffer[0, 0].tolist() == [255, 0, 0, 255]
    assert buffer[9, 9].tolist() == [0, 0, 0, 0]


def test_crop_layer_resamples_transformed_layer(qapp, project):
    """Test that a scaled layer is baked into the cropped pixels."""
    layer = project.layers[0]
    layer.transform = Transform(scale_x=2, scale_y=2)
    cmd = commands.crop_layer(project, layer.id, QRect(0, 0, 100, 80))
    check_round_trip(project, cmd)
    assert layer.transform == Transform()
    assert project.buffer(layer.id)[70, 90].tolist() == [255, 0, 0, 255]


def test_resize_canvas(project):
    """Test that resizing moves layers and the mask with the new origin."""
    project.selection_mask.set_values(rectangle_mask(64, 48, QRect(0, 0, 4, 4)))
    cmd = commands.resize_canvas(project, 100, 80, -10, -5)
    executor = check_round_trip(project, cmd)
    layer = project.layers[0]
    assert (project.width, project.height) == (100, 80)
    assert (layer.transform.translate_x, layer.transform.translate_y) == (10, 5)
    assert project.selection_mask.value_at(10, 5) == 255
    assert project.selection_mask.value_at(0, 0) == 0
    executor.undo(cmd)
    assert (project.width, project.height) == (64, 48)


def test_resize_canvas_emits_canvas_resized(qtbot, project):
    """Test that the executor announces new canvas sizes."""
    executor = CommandExecutor(project)
    with qtbot.waitSignal(executor.canvas_resized) as blocker:
        executor.do(commands.resize_canvas(project, 30, 20, 0, 0))
    assert blocker.args == [30, 20]


def test_paint_layer_snapshots_are_independent(project):
    """Test that the command keeps its own read-only copies of the pixels."""
    layer_id = project.layers[0].id
    before = project.buffer(layer_id).copy()
    after = before.copy()
    after[0, 0] = (0, 0, 0, 0)
    cmd = commands.paint_layer(layer_id, before, after)
    before[...] = 9
    assert cmd.before[1, 1].tolist() == [255, 0, 0, 255]
    assert not cmd.before.flags.writeable
    check_round_trip(project, cmd)
    project.layer_buffers[layer_id][...] = 0
    assert cmd.after[1, 1].tolist() == [255, 0, 0, 255]


def test_paint_layer_rejects_wrong_size(project):
    """Test that a buffer of the wrong size is refused."""
    layer_id = project.layers[0].id
    small = np.zeros((2, 2, 4), dtype=np.uint8)
    cmd = commands.paint_layer(layer_id, small, small)
    with pytest.raises(ProjectStateError):
        CommandExecutor(project).do(cmd)


def test_bucket_fill_without_selection_fills_layer(project):
    """Test that an empty selection fills the whole layer."""
    layer_id = project.layers[0].id
    cmd = commands.bucket_fill(project, layer_id, "#00FF00")
    check_round_trip(project, cmd)
    assert (project.buffer(layer_id) == (0, 255, 0, 255)).all()


def test_bucket_fill_respects_selection_and_transform(project):
    """Test that the mask is looked up at each layer pixel's canvas position."""
    layer = project.layers[0]
    layer.transform = Transform(translate_x=10)
    project.selection_mask.set_values(rectangle_mask(64, 48, QRect(10, 0, 10, 48)))
    cmd = commands.bucket_fill(project, layer.id, "#0000FF")
    check_round_trip(project, cmd)
    buffer = project.buffer(layer.id)
    assert (buffer[:, :10] == (0, 0, 255, 255)).all()
    assert (buffer[:, 10:] == (255, 0, 0, 255)).all()


def test_bucket_fill_blends_partial_selection(project):
    """Test that partially selected pixels are blended towards the colour."""
    layer_id = project.layers[0].id
    values = np.zeros((48, 64), dtype=np.uint8)
    values[0, 0] = 128
    project.selection_mask.set_values(values)
    CommandExecutor(project).do(commands.bucket_fill(project, layer_id, "#000000"))
    # 255 * (1 - 128/255) = 127
    assert project.buffer(layer_id)[0, 0].tolist() == [127, 0, 0, 255]


def test_delete_masked_area(project):
    """Test that alpha is reduced by the mask intensity."""
    layer_id = project.layers[0].id
    values = np.zeros((48, 64), dtype=np.uint8)
    values[0:4, 0:4] = 255
    values[5, 5] = 100
    project.selection_mask.set_values(values)
    cmd = commands.delete_masked_area(project, layer_id)
    check_round_trip(project, cmd)
    buffer = project.buffer(layer_id)
    assert (buffer[0:4, 0:4, 3] == 0).all()
    assert buffer[5, 5, 3] == 155
    assert buffer[10, 10, 3] == 255
    assert buffer[0, 0, 0] == 255


def test_rasterize_text_layer(qapp, project):
    """Test that rasterizing bakes the text into a canvas sized buffer."""
    add = commands.add_text_layer(project, BasicText(content="Hi", color="#00FF00"), x=4, y=4)
    CommandExecutor(project).do(add)
    cmd = commands.rasterize_layer(project, add.layer.id)
    check_round_trip(project, cmd)
    layer = project.layer(add.layer.id)
    assert not layer.is_text
    assert (layer.width, layer.height) == (64, 48)
    assert layer.transform == Transform()
    assert project.buffer(layer.id).shape == (48, 64, 4)


def test_rasterize_bakes_opacity_and_transform(qapp, project):
    """Test that opacity and placement end up in the pixels."""
    layer = project.layers[0]
    layer.opacity = 50
    layer.transform = Transform(translate_x=32)
    CommandExecutor(project).do(commands.rasterize_layer(project, layer.id))
    buffer = project.buffer(layer.id)
    assert layer.opacity == 100
    assert buffer[0, 0, 3] == 0
    assert int(buffer[0, 40, 3]) == pytest.approx(128, abs=1)


def test_text_commands(project):
    """Test content edits, style updates and box resizes."""
    add = commands.add_text_layer(project, BasicText(content="Hello"))
    CommandExecutor(project).do(add)
    layer_id = add.layer.id
    check_round_trip(project, commands.edit_text(project, layer_id, "Bye"))
    assert project.layer(layer_id).basic_text.content == "Bye"
    check_round_trip(
        project,
        commands.update_basic_text(project, layer_id, BasicText(content="Styled", font_size=40)),
    )
    assert project.layer(layer_id).name == "Styled"
    check_round_trip(
        project,
        commands.resize_text_layer(project, layer_id, (300, 100), (0, 0), (200, 80), (10, 5)),
    )
    layer = project.layer(layer_id)
    assert (layer.width, layer.height) == (200, 80)
    assert (layer.transform.translate_x, layer.transform.translate_y) == (10, 5)


def test_edit_text_requires_text_layer(project):
    """Test that raster layers cannot take text edits."""
    with pytest.raises(ProjectStateError):
        commands.edit_text(project, project.layers[0].id, "nope")


def test_set_selection_mask(qtbot, project):
    """Test replacing the selection and the selection_changed signal."""
    values = rectangle_mask(64, 48, QRect(1, 1, 5, 5))
    cmd = commands.set_selection_mask(project, values)
    executor = check_round_trip(project, cmd)
    assert project.selection_mask.value_at(2, 2) == 255
    with qtbot.waitSignal(executor.selection_changed):
        executor.undo(cmd)
    assert project.selection_mask.is_empty()


def test_unknown_command_is_rejected(project):
    """Test that the executor refuses objects it does not know."""
    with pytest.raises(TypeError):
        CommandExecutor(project).do(object())
