"""Tests for input validation in the MCP server tools."""

import math

import pytest

from vsdx_geometry.validation import (
    ValidationError,
    validate_action,
    validate_axis,
    validate_bool,
    validate_columns,
    validate_connection_dict,
    validate_direction,
    validate_directory,
    validate_enum,
    validate_int,
    validate_list,
    validate_non_empty_string,
    validate_non_negative_number,
    validate_number,
    validate_page_id,
    validate_positive_number,
    validate_shape_dict,
    validate_string,
    validate_update_dict,
    _CONTAINER_ACTIONS,
    _PAGE_ACTIONS,
)


class TestPrimitives:
    def test_non_empty_string(self) -> None:
        assert validate_non_empty_string("  a ", "f") == "a"
        with pytest.raises(ValidationError, match="'f' must be a non-empty string"):
            validate_non_empty_string("   ", "f")
        with pytest.raises(ValidationError):
            validate_non_empty_string(3, "f")

    def test_string(self) -> None:
        assert validate_string("", "t") == ""
        with pytest.raises(ValidationError):
            validate_string("", "t", allow_empty=False)
        with pytest.raises(ValidationError):
            validate_string(None, "t")

    def test_number(self) -> None:
        assert validate_number(2, "n") == 2.0
        with pytest.raises(ValidationError, match="must be a number"):
            validate_number("2", "n")
        with pytest.raises(ValidationError, match="must be a number"):
            validate_number(True, "n")
        with pytest.raises(ValidationError, match="finite"):
            validate_number(math.inf, "n")
        with pytest.raises(ValidationError, match=">= 0"):
            validate_number(-1, "n", min_val=0)
        with pytest.raises(ValidationError, match="<= 5"):
            validate_number(6, "n", max_val=5)

    def test_int(self) -> None:
        assert validate_int(3, "i") == 3
        with pytest.raises(ValidationError):
            validate_int(3.0, "i")
        with pytest.raises(ValidationError):
            validate_int(False, "i")

    def test_bool(self) -> None:
        assert validate_bool(True, "b") is True
        with pytest.raises(ValidationError):
            validate_bool(1, "b")

    def test_enum(self) -> None:
        assert validate_enum("vertical", "axis", {"VERTICAL"}) == "VERTICAL"
        with pytest.raises(ValidationError, match="must be one of"):
            validate_enum("diagonal", "axis", {"VERTICAL"})

    def test_list(self) -> None:
        assert validate_list([1], "l", min_length=1) == [1]
        with pytest.raises(ValidationError, match="at least 1"):
            validate_list([], "l", min_length=1)
        with pytest.raises(ValidationError, match="must be a list"):
            validate_list(None, "l")

    def test_directory(self) -> None:
        assert validate_directory(" out ", "directory") == "out"
        with pytest.raises(ValidationError):
            validate_directory("", "directory")

    def test_positive_and_non_negative(self) -> None:
        assert validate_positive_number(0.5, "w") == 0.5
        with pytest.raises(ValidationError, match="> 0"):
            validate_positive_number(0, "w")
        assert validate_non_negative_number(0, "gap") == 0
        with pytest.raises(ValidationError):
            validate_non_negative_number(-0.1, "gap")

    def test_columns(self) -> None:
        assert validate_columns(2) == 2
        with pytest.raises(ValidationError):
            validate_columns(0)


class TestDomain:
    def test_action(self) -> None:
        assert validate_action(" Create ", "page", _PAGE_ACTIONS) == "create"
        assert validate_action("ADD_MEMBERS", "container", _CONTAINER_ACTIONS) == "add_members"
        with pytest.raises(ValidationError, match="Valid actions"):
            validate_action("explode", "page", _PAGE_ACTIONS)
        with pytest.raises(ValidationError, match="requires an 'action'"):
            validate_action("", "page", _PAGE_ACTIONS)

    def test_axis_and_direction(self) -> None:
        assert validate_axis("Horizontal") == "horizontal"
        assert validate_axis("none") == "none"
        assert validate_direction("BELOW") == "below"
        with pytest.raises(ValidationError):
            validate_direction("up")

    def test_page_id(self) -> None:
        assert validate_page_id("page-1.v2") == "page-1.v2"
        with pytest.raises(ValidationError):
            validate_page_id("../etc")


class TestDicts:
    def test_shape_dict(self) -> None:
        validate_shape_dict({"x": 0, "y": 0, "width": 1, "height": 1, "foreign": True}, 0)
        with pytest.raises(ValidationError, match="missing required key 'height'"):
            validate_shape_dict({"x": 0, "y": 0, "width": 1}, 0)
        with pytest.raises(ValidationError, match="'x' must be a number"):
            validate_shape_dict({"x": "0", "y": 0, "width": 1, "height": 1}, 0)
        with pytest.raises(ValidationError, match="'parent_id' must be a string"):
            validate_shape_dict({"x": 0, "y": 0, "width": 1, "height": 1, "parent_id": 3}, 0)
        with pytest.raises(ValidationError, match="must be a dict"):
            validate_shape_dict([1, 2], 4)

    def test_update_dict(self) -> None:
        validate_update_dict({"shape_id": "1", "x": 1, "y": 2}, 0)
        with pytest.raises(ValidationError, match="'x' and 'y' must be given together"):
            validate_update_dict({"shape_id": "1", "x": 1}, 0)
        with pytest.raises(ValidationError, match="'width' and 'height'"):
            validate_update_dict({"shape_id": "1", "height": 1}, 0)
        with pytest.raises(ValidationError, match="shape_id"):
            validate_update_dict({"x": 1, "y": 1}, 0)

    def test_connection_dict(self) -> None:
        validate_connection_dict({"from_id": "1", "to_id": "2"}, 0)
        with pytest.raises(ValidationError, match="'to_id'"):
            validate_connection_dict({"from_id": "1"}, 0)
        with pytest.raises(ValidationError, match="non-empty"):
            validate_connection_dict({"from_id": "1", "to_id": " "}, 0)
