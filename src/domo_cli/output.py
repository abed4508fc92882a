"""Rendering of command results for the terminal.

Results are printed as YAML by default because it reads best in a
terminal; JSON, CSV and a debug repr are available for scripting.
"""

import csv
import enum
import io
import json
from collections.abc import Sequence
from typing import Any

import yaml
from pydantic import BaseModel


class Template(enum.Enum):
    YAML = "yaml"
    JSON = "json"
    CSV = "csv"
    DEBUG = "debug"


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, list | tuple):
        return [_plain(item) for item in value]
    return value


def _dump_yaml(data: Any) -> str:
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)


def _csv_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict | list):
        return json.dumps(value)
    return str(value)


def _rows_to_csv(header: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow([_csv_cell(value) for value in row])
    return buffer.getvalue()


def records_to_csv(records: Sequence[dict[str, Any]]) -> str:
    """Render a list of flat-ish records as CSV.

    Columns are the union of all keys in first-seen order; nested values
    are written as JSON.
    """
    header: list[str] = []
    for record in records:
        header.extend(key for key in record if key not in header)
    rows = [[record.get(key) for key in header] for record in records]
    return _rows_to_csv(header, rows)


def render(result: Any, template: Template = Template.YAML) -> str:
    """Render a model, a list of models or plain data."""
    if template is Template.DEBUG:
        return f"{result!r}\n"

    data = _plain(result)
    if template is Template.JSON:
        return json.dumps(data) + "\n"
    if template is Template.CSV and isinstance(data, list):
        records = [item if isinstance(item, dict) else {"value": item} for item in data]
        return records_to_csv(records)
    if template is Template.CSV and isinstance(data, dict):
        return records_to_csv([data])
    return _dump_yaml(data)


def render_query(result: BaseModel, template: Template = Template.YAML) -> str:
    """Render a query result; CSV output is the result grid itself."""
    if template is Template.CSV:
        header = getattr(result, "columns", None) or []
        rows = getattr(result, "rows", None) or []
        return _rows_to_csv(header, rows)
    return render(result, template)


def render_csv_text(text: str, template: Template = Template.YAML) -> str:
    """Render exported CSV text; JSON and YAML get a list of rows."""
    if template in {Template.CSV, Template.DEBUG}:
        return text if text.endswith("\n") else text + "\n"
    rows = list(csv.reader(io.StringIO(text)))
    if template is Template.JSON:
        return json.dumps(rows) + "\n"
    return _dump_yaml(rows)
