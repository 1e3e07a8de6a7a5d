"""
Tests for frame, shape, text and boolean creation through the repository.

Run: python -m pytest tests/test_creators.py -v
"""

import asyncio

from canvas import Canvas, FontName
from config import EngineConfig
from design_node import parse_design_payload
from node_repository import NodeRepository
from conftest import solid


def create(repository, payload):
    return asyncio.run(repository.create_nodes(parse_design_payload(payload)))


async def failing_creator(data, session, parent=None):
    session.canvas.create_rectangle()
    raise RuntimeError("creator exploded")


class TestDispatch:
    def test_children_follow_layer_index(self, repository):
        [frame] = create(repository, {
            "type": "FRAME",
            "name": "Parent",
            "children": [
                {"type": "RECTANGLE", "name": "second", "_layerIndex": 1},
                {"type": "RECTANGLE", "name": "first", "_layerIndex": 0},
            ],
        })
        assert [child.name for child in frame.children] == ["first", "second"]

    def test_unknown_type_becomes_frame(self, repository):
        [node] = create(repository, {"type": "SLICE", "name": "Odd"})
        assert node.type == "FRAME"
        assert node.name == "Odd"

    def test_failed_node_is_discarded_and_siblings_continue(self, repository, canvas):
        repository._creators["ELLIPSE"] = failing_creator
        created = create(repository, [
            {"type": "ELLIPSE", "name": "Broken", "_layerIndex": 0},
            {"type": "FRAME", "name": "Fine", "_layerIndex": 1},
        ])
        assert [node.name for node in created] == ["Fine"]
        assert list(canvas.current_page.children) == created

    def test_creation_log_is_cleared_after_import(self, repository, canvas):
        create(repository, {"type": "FRAME", "children": [{"type": "RECTANGLE"}, {"type": "ELLIPSE"}]})
        assert canvas.checkpoint() == 0

    def test_position_and_common_properties(self, repository):
        [rect] = create(repository, {
            "type": "RECTANGLE", "x": 10, "y": 20, "width": 30, "height": 40,
            "opacity": 0.5, "visible": False, "rotation": 45,
        })
        assert (rect.x, rect.y, rect.width, rect.height) == (10, 20, 30, 40)
        assert rect.opacity == 0.5
        assert rect.visible is False
        assert round(rect.rotation, 6) == 45


class TestContainers:
    def test_rectangle_with_children_becomes_frame(self, repository):
        [node] = create(repository, {"type": "RECTANGLE", "children": [{"type": "TEXT", "characters": "hi"}]})
        assert node.type == "FRAME"
        assert node.name == "Rectangle"
        assert len(node.children) == 1

    def test_group_created_from_placed_children(self, repository, canvas):
        repository._creators["ELLIPSE"] = failing_creator
        [group] = create(repository, {
            "type": "GROUP",
            "name": "Pair",
            "children": [
                {"type": "RECTANGLE", "width": 10, "height": 10, "_layerIndex": 0},
                {"type": "ELLIPSE", "_layerIndex": 1},
                {"type": "RECTANGLE", "x": 20, "width": 10, "height": 10, "_layerIndex": 2},
            ],
        })
        assert group.type == "GROUP"
        assert len(group.children) == 2
        assert list(canvas.current_page.children) == [group]
        assert (group.width, group.height) == (30, 10)

    def test_empty_group_becomes_transparent_frame(self, repository):
        [node] = create(repository, {"type": "GROUP", "width": 40, "height": 30})
        assert node.type == "FRAME"
        assert node.name == "Group"
        assert node.fills == ()
        assert node.clips_content is False

    def test_section_size_and_children(self, repository):
        [section] = create(repository, {
            "type": "SECTION", "width": 500, "height": 300, "children": [{"type": "FRAME"}],
        })
        assert (section.width, section.height) == (500, 300)
        assert section.children[0].type == "FRAME"

    def test_frame_properties(self, repository):
        [frame] = create(repository, {
            "type": "FRAME", "width": 200, "height": 100, "fills": [solid(1, 1, 1)],
            "layoutMode": "VERTICAL", "paddingTop": 8, "clipsContent": False,
            "layoutGrids": [{"pattern": "COLUMNS", "count": 4, "gutterSize": 8, "alignment": "STRETCH"}],
        })
        assert frame.layout_mode == "VERTICAL"
        assert frame.padding_top == 8
        assert frame.clips_content is False
        assert frame.layout_grids[0].count == 4


class TestShapes:
    def test_line_defaults_to_black_stroke(self, repository):
        [line] = create(repository, {"type": "LINE", "width": 80})
        assert line.height == 0
        assert line.width == 80
        assert line.strokes[0].color.r == 0.0
        assert line.stroke_weight == 1

    def test_line_uses_fills_as_strokes(self, repository):
        [line] = create(repository, {"type": "LINE", "fills": [solid(1, 0, 0)], "strokeWeight": 3})
        assert line.strokes[0].color.r == 1.0
        assert line.stroke_weight == 3

    def test_invalid_stroke_weight_keeps_the_line(self, repository):
        [line] = create(repository, {"type": "LINE", "width": 80, "strokeWeight": -2})
        assert line.type == "LINE"
        assert line.strokes[0].color.r == 0.0
        assert line.stroke_weight == 1

    def test_explicit_zero_stroke_weight(self, repository):
        [line] = create(repository, {"type": "LINE", "strokeWeight": 0})
        assert line.stroke_weight == 0

    def test_vector_without_paths_is_placeholder(self, repository):
        [node] = create(repository, {"type": "VECTOR", "name": "Icon"})
        assert node.type == "RECTANGLE"
        assert node.name == "Icon (Vector placeholder)"
        assert (node.width, node.height) == (24, 24)

    def test_vector_paths_win_over_network(self, repository):
        [vector] = create(repository, {
            "type": "VECTOR",
            "vectorPaths": [{"windingRule": "EVENODD", "data": "M 0 0 L 10 10 Z"}],
            "vectorNetwork": {"vertices": [{"x": 0, "y": 0}], "segments": []},
        })
        assert vector.vector_paths[0].winding_rule == "EVENODD"
        assert vector.vector_network is None

    def test_vector_network(self, repository):
        [vector] = create(repository, {
            "type": "VECTOR",
            "vectorNetwork": {
                "vertices": [{"x": 0, "y": 0}, {"x": 10, "y": 0}],
                "segments": [{"start": 0, "end": 1}],
            },
        })
        assert len(vector.vector_network["vertices"]) == 2

    def test_star_and_polygon(self, repository):
        star, polygon = create(repository, [
            {"type": "STAR", "pointCount": 7, "innerRadius": 0.5, "_layerIndex": 0},
            {"type": "POLYGON", "pointCount": 2, "_layerIndex": 1},
        ])
        assert (star.point_count, star.inner_radius) == (7, 0.5)
        assert polygon.point_count == 3

    def test_ellipse_arc(self, repository):
        [ellipse] = create(repository, {
            "type": "ELLIPSE", "arcData": {"startingAngle": 0, "endingAngle": 3.14, "innerRadius": 0.4},
        })
        assert ellipse.arc_data.ending_angle == 3.14


class TestText:
    def test_font_and_characters(self, repository):
        [text] = create(repository, {
            "type": "TEXT", "characters": "Hello", "fontName": {"family": "Inter", "style": "Bold"}, "fontSize": 18,
        })
        assert text.characters == "Hello"
        assert text.font_name == FontName("Inter", "Bold")
        assert text.font_size == 18

    def test_unavailable_font_falls_back(self):
        canvas = Canvas(fonts=[("Arial", "Regular")])
        repository = NodeRepository(canvas, EngineConfig())
        [text] = create(repository, {"type": "TEXT", "characters": "x", "fontName": {"family": "Comic Sans"}})
        assert text.font_name == FontName("Arial", "Regular")
        assert repository.fonts.loaded == ["Arial-Regular"]

    def test_auto_resize_inferred_from_width(self, repository):
        [text] = create(repository, {"type": "TEXT", "characters": "wrap me", "width": 120})
        assert text.text_auto_resize == "HEIGHT"
        assert text.width == 120

    def test_auto_resize_inside_auto_layout(self, repository):
        [text] = create(repository, {"type": "TEXT", "characters": "hug", "layoutGrow": 0})
        assert text.text_auto_resize == "WIDTH_AND_HEIGHT"

    def test_segments_are_clamped(self, repository):
        [text] = create(repository, {
            "type": "TEXT",
            "characters": "abc",
            "textSegments": [
                {"start": 1, "end": 10, "fontSize": 20},
                {"start": 5, "end": 8, "fontSize": 30},
            ],
        })
        assert text.get_range_font_size(0, 1) == 12
        assert text.get_range_font_size(1, 3) == 20

    def test_text_fills(self, repository):
        [text] = create(repository, {"type": "TEXT", "characters": "red", "fills": [solid(1, 0, 0)]})
        assert text.fills[0].color.r == 1.0

    def test_text_without_fills_has_none(self, repository):
        [text] = create(repository, {"type": "TEXT", "characters": "plain"})
        assert text.fills == ()


class TestBooleanOperations:
    def test_needs_two_children(self, repository, canvas, monkeypatch):
        def forbidden(*args, **kwargs):
            raise AssertionError("boolean primitive must not be called")

        for name in ("union", "subtract", "intersect", "exclude"):
            monkeypatch.setattr(canvas, name, forbidden)

        [node] = create(repository, {
            "type": "BOOLEAN_OPERATION", "booleanOperation": "SUBTRACT", "children": [{"type": "RECTANGLE"}],
        })
        assert node.type == "FRAME"
        assert node.name == "Boolean"
        assert len(node.children) == 1

    def test_combines_operands(self, repository, canvas):
        [node] = create(repository, {
            "type": "BOOLEAN_OPERATION",
            "name": "Cutout",
            "booleanOperation": "subtract",
            "children": [{"type": "RECTANGLE"}, {"type": "ELLIPSE", "x": 20}],
        })
        assert node.type == "BOOLEAN_OPERATION"
        assert node.boolean_operation == "SUBTRACT"
        assert len(node.children) == 2
        assert list(canvas.current_page.children) == [node]

    def test_unknown_operation_uses_union(self, repository):
        [node] = create(repository, {
            "type": "BOOLEAN_OPERATION", "booleanOperation": "MERGE",
            "children": [{"type": "RECTANGLE"}, {"type": "RECTANGLE"}],
        })
        assert node.boolean_operation == "UNION"

    def test_failed_operands_fall_back_to_frame(self, repository, canvas):
        repository._creators["ELLIPSE"] = failing_creator
        [node] = create(repository, {
            "type": "BOOLEAN_OPERATION",
            "children": [{"type": "RECTANGLE"}, {"type": "ELLIPSE"}],
        })
        assert node.type == "FRAME"
        assert list(canvas.current_page.children) == [node]
