"""Tests for rendering command results."""

import json

import yaml

from domo_cli import output
from domo_cli.publicapi import types


def _users():
    return [
        types.User(id=1, name="Ann", email="ann@example.com"),
        types.User(id=2, name="Bob", title="Analyst"),
    ]


def test_yaml_is_default_and_uses_wire_names():
    text = output.render(types.Stream(id=1, update_method="APPEND"))

    assert yaml.safe_load(text) == {"id": 1, "updateMethod": "APPEND"}


def test_json_list_of_models():
    text = output.render(_users(), output.Template.JSON)

    assert json.loads(text) == [
        {"id": 1, "name": "Ann", "email": "ann@example.com"},
        {"id": 2, "name": "Bob", "title": "Analyst"},
    ]


def test_csv_columns_are_union_of_keys():
    """Records missing a key get an empty cell in that column."""
    text = output.render(_users(), output.Template.CSV)

    assert text.splitlines() == [
        "id,name,email,title",
        "1,Ann,ann@example.com,",
        "2,Bob,,Analyst",
    ]


def test_csv_nested_values_are_json():
    text = output.records_to_csv([{"id": 1, "owner": {"id": 2}}])

    assert text.splitlines()[1] == '1,"{""id"": 2}"'


def test_csv_of_plain_values():
    assert output.render([27, 28], output.Template.CSV) == "value\n27\n28\n"


def test_debug_is_repr():
    user = types.User(id=1)

    assert output.render(user, output.Template.DEBUG) == f"{user!r}\n"


def test_query_csv_is_result_grid():
    result = types.QueryResult(columns=["a", "b"], rows=[[1, "x"], [2, None]])

    assert output.render_query(result, output.Template.CSV) == "a,b\n1,x\n2,\n"


def test_query_json_is_whole_result():
    result = types.QueryResult(columns=["a"], rows=[[1]], num_rows=1)

    assert json.loads(output.render_query(result, output.Template.JSON))["numRows"] == 1


def test_exported_csv_passthrough_and_rows():
    """Exported CSV prints as-is, or as a list of rows for JSON."""
    text = "a,b\n1,2"

    assert output.render_csv_text(text, output.Template.CSV) == "a,b\n1,2\n"
    assert json.loads(output.render_csv_text(text, output.Template.JSON)) == [
        ["a", "b"],
        ["1", "2"],
    ]
