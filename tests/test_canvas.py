"""
Tests for the in-memory canvas host.

Run: python -m pytest tests/test_canvas.py -v
"""

import asyncio

import pytest

from canvas import MIXED, RGB, Canvas, CanvasError, Capability, FontName, SolidPaint
from conftest import make_png


class TestCapabilities:
    def test_unsupported_property_raises(self, canvas):
        group_child = canvas.create_rectangle()
        group = canvas.group([group_child], canvas.current_page)
        assert not group.supports(Capability.FILLS)
        with pytest.raises(CanvasError):
            group.fills = []

    def test_value_validation(self, canvas):
        rect = canvas.create_rectangle()
        with pytest.raises(CanvasError):
            rect.opacity = 1.5
        with pytest.raises(CanvasError):
            rect.blend_mode = "GLOW"

    def test_layout_child_requires_auto_layout_parent(self, canvas):
        frame = canvas.create_frame()
        rect = canvas.create_rectangle()
        frame.append_child(rect)
        with pytest.raises(CanvasError):
            rect.layout_grow = 1
        frame.layout_mode = "HORIZONTAL"
        rect.layout_grow = 1
        assert rect.layout_grow == 1

    def test_corner_radius_mixed(self, canvas):
        rect = canvas.create_rectangle()
        rect.corner_radius = 6
        assert rect.corner_radius == 6
        rect.top_left_radius = 2
        assert rect.corner_radius is MIXED


class TestStructure:
    def test_group_refuses_unplaced_nodes(self, canvas):
        rect = canvas.create_rectangle()
        rect.remove()
        with pytest.raises(CanvasError):
            canvas.group([rect], canvas.current_page)

    def test_group_bounds_follow_children(self, canvas):
        a = canvas.create_rectangle()
        b = canvas.create_rectangle()
        a.resize(10, 10)
        b.resize(10, 10)
        b.x = 20
        group = canvas.group([a, b], canvas.current_page)
        assert (group.x, group.width, group.height) == (0, 30, 10)
        group.x = 5
        assert (a.x, b.x) == (5, 25)

    def test_emptied_group_removes_itself(self, canvas):
        rect = canvas.create_rectangle()
        group = canvas.group([rect], canvas.current_page)
        rect.remove()
        assert group.removed
        assert canvas.current_page.children == ()

    def test_discard_since_keeps_requested_nodes(self, canvas):
        checkpoint = canvas.checkpoint()
        stray = canvas.create_rectangle()
        kept = canvas.create_frame()
        inner = canvas.create_ellipse()
        kept.append_child(inner)

        removed = canvas.discard_since(checkpoint, keep=[kept])
        assert removed == 1
        assert stray.removed
        assert not kept.removed and not inner.removed

    def test_instance_clones_component_children(self, canvas):
        component = canvas.create_component()
        component.append_child(canvas.create_rectangle())
        instance = component.create_instance()
        assert instance.main_component is component
        assert len(instance.children) == 1
        assert instance.children[0] is not component.children[0]


class TestText:
    def test_characters_require_loaded_font(self, canvas):
        text = canvas.create_text()
        with pytest.raises(CanvasError):
            text.characters = "Hi"
        asyncio.run(canvas.load_font(FontName("Inter", "Regular")))
        text.characters = "Hi"
        assert text.characters == "Hi"

    def test_unavailable_font(self, canvas):
        with pytest.raises(CanvasError):
            asyncio.run(canvas.load_font(FontName("Comic Sans", "Regular")))

    def test_mixed_ranges(self, canvas):
        asyncio.run(canvas.load_font(FontName("Inter", "Regular")))
        text = canvas.create_text()
        text.characters = "abcdef"
        text.set_range_font_size(0, 3, 20)
        assert text.font_size is MIXED
        assert text.get_range_font_size(0, 3) == 20
        assert text.get_range_font_size(3, 6) == 12

    def test_default_text_fill(self, canvas):
        text = canvas.create_text()
        assert text.fills == (SolidPaint(RGB(0.0, 0.0, 0.0)),)


class TestImages:
    def test_create_image_validates_and_hashes(self, canvas):
        image = asyncio.run(canvas.create_image(make_png(size=(3, 2))))
        assert (image.width, image.height) == (3, 2)
        assert canvas.get_image_by_hash(image.hash) is image

    def test_rejects_non_bitmap(self, canvas):
        with pytest.raises(CanvasError):
            asyncio.run(canvas.create_image(b"<svg></svg>"))

    def test_library_import(self):
        canvas = Canvas()
        component = canvas.create_component()
        key = canvas.publish_component(component)
        assert asyncio.run(canvas.import_component_by_key(key)) is component
        with pytest.raises(CanvasError):
            asyncio.run(canvas.import_component_by_key("missing"))
