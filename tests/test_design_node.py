"""
Tests for the DesignNode boundary schema and payload parsing.

Run: python -m pytest tests/test_design_node.py -v
"""

import json

import pytest

from design_node import DesignNode, count_nodes, parse_design_payload, sort_by_layer_index
from errors import INVALID_PAYLOAD, TranslationError
import node_types


class TestParseDesignPayload:
    def test_json_string_with_list(self):
        raw = json.dumps([{"type": "FRAME", "name": "A"}, {"type": "TEXT", "name": "B"}])
        nodes = parse_design_payload(raw)
        assert [n.name for n in nodes] == ["A", "B"]

    def test_single_object_becomes_list(self):
        nodes = parse_design_payload({"type": "RECTANGLE", "name": "Box"})
        assert len(nodes) == 1
        assert nodes[0].type == "RECTANGLE"

    def test_unwraps_one_level(self):
        for key in ("data", "design", "result"):
            nodes = parse_design_payload({key: [{"type": "FRAME"}]})
            assert len(nodes) == 1

    def test_bytes_payload(self):
        nodes = parse_design_payload(b'[{"type": "ELLIPSE"}]')
        assert nodes[0].type == "ELLIPSE"

    def test_invalid_json_raises_structured_error(self):
        with pytest.raises(TranslationError) as info:
            parse_design_payload("{not json")
        assert info.value.code == INVALID_PAYLOAD
        assert "line" in info.value.details

    def test_wrong_top_level_shape(self):
        with pytest.raises(TranslationError) as info:
            parse_design_payload(42)
        assert info.value.code == INVALID_PAYLOAD

    def test_non_object_entries_are_dropped(self):
        nodes = parse_design_payload([{"type": "FRAME"}, "junk", 3])
        assert len(nodes) == 1


class TestLenientValidation:
    def test_aliases(self):
        node = DesignNode.model_validate({"type": "INSTANCE", "_layerIndex": 3, "_mainComponentNodeId": "1:2"})
        assert node.layerIndex == 3
        assert node.mainComponentNodeId == "1:2"
        assert node.to_payload()["_layerIndex"] == 3

    def test_malformed_fill_is_dropped_not_fatal(self):
        node = DesignNode.model_validate({
            "type": "RECTANGLE",
            "fills": [{"type": "SOLID", "color": {"r": 1, "g": 0, "b": 0}}, {"color": "red"}, "blue"],
        })
        assert len(node.fills) == 1

    def test_malformed_nested_object_is_ignored(self):
        node = DesignNode.model_validate({"type": "TEXT", "fontName": "Inter", "lineHeight": {"unit": "PIXELS", "value": 20}})
        assert node.fontName is None
        assert node.lineHeight.value == 20

    def test_component_property_shorthand(self):
        node = DesignNode.model_validate({"type": "INSTANCE", "componentProperties": {"Label": "Buy"}})
        assert node.componentProperties["Label"].value == "Buy"

    def test_unknown_fields_are_preserved(self):
        node = DesignNode.model_validate({"type": "FRAME", "pluginData": {"a": 1}})
        assert node.to_payload()["pluginData"] == {"a": 1}


class TestTreeHelpers:
    def test_sort_by_layer_index_is_stable_and_sparse(self):
        nodes = [DesignNode(name="c", layerIndex=10), DesignNode(name="a"), DesignNode(name="b", layerIndex=2)]
        assert [n.name for n in sort_by_layer_index(nodes)] == ["a", "b", "c"]

    def test_count_nodes_accepts_models_and_dicts(self):
        tree = [{"type": "FRAME", "children": [{"type": "TEXT"}, {"type": "GROUP", "children": [{"type": "LINE"}]}]}]
        assert count_nodes(tree) == 4
        assert count_nodes(parse_design_payload(tree)) == 4


class TestNodeTypes:
    def test_normalize(self):
        assert node_types.normalize("frame") == "FRAME"
        assert node_types.normalize(" boolean_operation ") == "BOOLEAN_OPERATION"
        assert node_types.normalize(None) == "FRAME"
        assert node_types.normalize("SLICE") == "FRAME"

    def test_paint_and_effect_families(self):
        assert "GRADIENT_DIAMOND" in node_types.GRADIENT_TYPES
        assert "INNER_SHADOW" in node_types.SHADOW_TYPES
        assert "BACKGROUND_BLUR" in node_types.BLUR_TYPES
