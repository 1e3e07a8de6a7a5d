"""
Tests for the property-group helpers applied to new canvas objects.

Run: python -m pytest tests/test_node_helpers.py -v
"""

import asyncio

from canvas import MIXED, Constraints
from design_node import DesignNode
import node_helpers
from node_helpers import (
    apply_auto_layout,
    apply_common_properties,
    apply_corner_radius,
    apply_fills,
    apply_layout_child,
    apply_strokes,
    ensure_min_dimensions,
    property_group,
)
from conftest import solid


def node_data(**fields):
    return DesignNode.model_validate(fields)


class TestPropertyGroup:
    def test_sync_failure_is_contained(self, canvas):
        calls = []

        @property_group("test group")
        def explode(node):
            calls.append(node)
            raise ValueError("boom")

        rect = canvas.create_rectangle()
        assert explode(rect) is None
        assert calls == [rect]

    def test_async_failure_is_contained(self, canvas):
        @property_group("async group")
        async def explode(node):
            raise RuntimeError("boom")

        assert asyncio.run(explode(canvas.create_rectangle())) is None

    def test_invalid_value_skips_only_that_group(self, canvas):
        rect = canvas.create_rectangle()
        apply_common_properties(rect, node_data(type="RECTANGLE", blendMode="GLOW", isMask=True))
        assert rect.blend_mode == "PASS_THROUGH"
        assert rect.is_mask is True


class TestDimensions:
    def test_ensure_min_dimensions(self):
        assert ensure_min_dimensions(None, 0) == (100, 100)
        assert ensure_min_dimensions(0.2, 50) == (1.0, 50)
        assert ensure_min_dimensions(None, None, 24) == (24, 24)


class TestPaints:
    def test_missing_fills_clear_defaults(self, canvas):
        rect = canvas.create_rectangle()
        assert rect.fills
        apply_fills(rect, None)
        assert rect.fills == ()

    def test_strokes_apply_weight_only_with_paint(self, canvas):
        rect = canvas.create_rectangle()
        apply_strokes(rect, node_data(type="RECTANGLE", strokeWeight=3))
        assert rect.stroke_weight == 1.0

        apply_strokes(rect, node_data(type="RECTANGLE", strokes=[solid(0, 0, 0)], strokeWeight=3, strokeAlign="OUTSIDE"))
        assert len(rect.strokes) == 1
        assert rect.stroke_weight == 3
        assert rect.stroke_align == "OUTSIDE"

    def test_unsupported_node_is_left_alone(self, canvas):
        rect = canvas.create_rectangle()
        group = canvas.group([rect], canvas.current_page)
        apply_fills(group, node_data(fills=[solid(1, 0, 0)]).fills)
        assert not hasattr(group, "fills")


class TestCorners:
    def test_per_corner_values_win(self, canvas):
        rect = canvas.create_rectangle()
        apply_corner_radius(rect, node_data(cornerRadius=10, topLeftRadius=4))
        assert rect.top_left_radius == 4
        assert rect.bottom_right_radius == 0
        assert rect.corner_radius is MIXED

    def test_uniform_radius(self, canvas):
        rect = canvas.create_rectangle()
        apply_corner_radius(rect, node_data(cornerRadius=8, cornerSmoothing=0.6))
        assert rect.corner_radius == 8
        assert rect.corner_smoothing == 0.6


class TestLayout:
    def test_auto_layout_fields(self, canvas):
        frame = canvas.create_frame()
        apply_auto_layout(frame, node_data(
            layoutMode="HORIZONTAL", itemSpacing=12, paddingLeft=4, counterAxisAlignItems="BASELINE",
        ))
        assert frame.layout_mode == "HORIZONTAL"
        assert frame.item_spacing == 12
        assert frame.padding_left == 4
        assert frame.counter_axis_align_items == "MIN"

    def test_layout_none_is_ignored(self, canvas):
        frame = canvas.create_frame()
        apply_auto_layout(frame, node_data(layoutMode="NONE", itemSpacing=12))
        assert frame.item_spacing == 0

    def test_layout_child_needs_auto_layout_parent(self, canvas):
        frame = canvas.create_frame()
        rect = canvas.create_rectangle()
        frame.append_child(rect)
        apply_layout_child(rect, node_data(layoutGrow=1, layoutAlign="STRETCH"))
        assert rect.layout_grow == 0

        frame.layout_mode = "VERTICAL"
        apply_layout_child(rect, node_data(layoutGrow=1, layoutAlign="STRETCH"))
        assert (rect.layout_grow, rect.layout_align) == (1, "STRETCH")

    def test_constraints_and_export_settings(self, canvas):
        rect = canvas.create_rectangle()
        apply_common_properties(rect, node_data(
            constraints={"horizontal": "STRETCH", "vertical": "CENTER"},
            exportSettings=[{"format": "PNG", "suffix": "@2x", "constraint": {"type": "SCALE", "value": 2}}],
        ))
        assert rect.constraints == Constraints("STRETCH", "CENTER")
        assert rect.export_settings[0].constraint.value == 2

    def test_describe(self, canvas):
        rect = canvas.create_rectangle()
        rect.name = "Box"
        assert node_helpers.describe(rect) == "RECTANGLE 'Box'"
