import numpy as np
import pytest
from PIL import Image
from PySide6.QtGui import QFontDatabase

from easel.core import command as commands
from easel.core.command import CommandExecutor
from easel.core.layer import BasicText, Shadow
from easel.core.layer_rasterizer import (
    export_image,
    layer_opacity,
    rasterize_layer_to_canvas,
    render_project,
)
from easel.core.project import Project
from easel.core.transform import Transform


@pytest.fixture
def stacked(qapp):
    """Red bottom layer with a blue 10x10 square layer on top at (5, 5)."""
    project = Project.create(32, 24)
    bottom = project.add_raster_layer("Bottom")
    project.layer_buffers[bottom.id][...] = (255, 0, 0, 255)
    top = project.add_raster_layer("Top")
    top.width = top.height = 10
    project.layer_buffers[top.id] = np.full((10, 10, 4), (0, 0, 255, 255), dtype=np.uint8)
    top.transform = Transform(translate_x=5, translate_y=5)
    return project


def test_top_layer_is_drawn_last(stacked):
    """Test that index 0 ends up on top of the composite."""
    image = render_project(stacked)
    assert image.shape == (24, 32, 4)
    assert image[10, 10].tolist() == [0, 0, 255, 255]
    assert image[0, 0].tolist() == [255, 0, 0, 255]


def test_hidden_layers_are_skipped(stacked):
    """Test that invisible layers do not contribute."""
    stacked.layers[0].visible = False
    assert render_project(stacked)[10, 10].tolist() == [255, 0, 0, 255]


def test_opacity_blends_layers(stacked):
    """Test that a half transparent top layer mixes with the one below."""
    stacked.layers[0].opacity = 50
    r, g, b, a = render_project(stacked)[10, 10].tolist()
    assert a == 255
    assert r == pytest.approx(127, abs=2)
    assert b == pytest.approx(128, abs=2)


def test_layer_opacity_is_clamped(stacked):
    """Test the opacity percentage to painter opacity conversion."""
    layer = stacked.layers[0]
    layer.opacity = 150
    assert layer_opacity(layer) == 1.0
    layer.opacity = -10
    assert layer_opacity(layer) == 0.0


def test_transform_places_layer(stacked):
    """Test that scaling a layer enlarges its footprint."""
    top = stacked.layers[0]
    top.transform = Transform(translate_x=5, translate_y=5, scale_x=2, scale_y=2)
    image = rasterize_layer_to_canvas(top, stacked.buffer(top.id), 32, 24)
    assert image[20, 20].tolist() == [0, 0, 255, 255]
    assert image[2, 2, 3] == 0
    assert image[23, 28, 3] == 0


def test_shadow_is_drawn_below_layer(stacked):
    """Test that the shadow shows up offset from the layer."""
    top = stacked.layers[0]
    top.shadow = Shadow(color="#00FF00", blur=0, offset_x=5, offset_y=5)
    image = rasterize_layer_to_canvas(top, stacked.buffer(top.id), 32, 24)
    # Inside the layer the layer itself wins.
    assert image[10, 10].tolist() == [0, 0, 255, 255]
    # Past the layer's bottom right corner only the shadow remains.
    assert image[17, 17].tolist() == [0, 255, 0, 255]
    assert image[2, 2, 3] == 0


def test_blurred_shadow_is_soft(stacked):
    """Test that a blurred shadow fades out."""
    top = stacked.layers[0]
    top.shadow = Shadow(color="#000000", blur=6, offset_x=6, offset_y=6)
    image = rasterize_layer_to_canvas(top, stacked.buffer(top.id), 32, 24)
    edge_alpha = image[21, 21, 3]
    assert 0 < edge_alpha < 255


def test_text_layer_renders_pixels(qapp):
    """Test that a text layer produces coloured pixels inside its box."""
    if not QFontDatabase.families():
        pytest.skip("no fonts installed")
    project = Project.create(200, 80)
    add = commands.add_text_layer(
        project, BasicText(content="Hello", font_size=32, color="#FF0000"), x=10, y=10
    )
    CommandExecutor(project).do(add)
    image = render_project(project)
    alpha = image[..., 3]
    assert alpha.any()
    ys, xs = np.nonzero(alpha)
    assert xs.min() >= 10 and ys.min() >= 10


def test_empty_canvas(qapp):
    """Test that a zero sized canvas renders an empty buffer."""
    project = Project.create(0, 0)
    assert render_project(project).shape == (0, 0, 4)


def test_export_png_keeps_alpha(stacked, tmp_path):
    """Test exporting the flattened canvas with transparency."""
    stacked.layers[1].visible = False
    path = tmp_path / "out.png"
    export_image(stacked, path)
    with Image.open(path) as image:
        assert image.size == (32, 24)
        assert image.mode == "RGBA"
        assert image.getpixel((0, 0))[3] == 0
        assert image.getpixel((10, 10)) == (0, 0, 255, 255)


def test_export_jpeg_flattens_on_background(stacked, tmp_path):
    """Test that formats without alpha get the background colour."""
    stacked.layers[1].visible = False
    stacked.settings.background_color = "#FFFFFF"
    path = tmp_path / "out.jpg"
    export_image(stacked, path, quality=95)
    with Image.open(path) as image:
        assert image.mode == "RGB"
        r, g, b = image.getpixel((1, 1))
        assert min(r, g, b) > 240
