"""Tests for the command-line interface and its exit codes."""

import json

import httpx
import pytest
from click.testing import CliRunner

from domo_cli import cli
from domo_cli.config import CONFIG_ENV_VAR
from domo_cli.publicapi import DomoError, ValidationError

BASE_ARGS = [
    "--host",
    "https://api.example.test",
    "--client-id",
    "client-id",
    "--client-secret",
    "client-secret",
]

CLEARED_ENV = {
    name: None
    for name in (
        CONFIG_ENV_VAR,
        "DOMO_API_HOST",
        "API_HOST",
        "DOMO_API_CLIENT_ID",
        "API_CLIENT_ID",
        "DOMO_API_CLIENT_SECRET",
        "API_CLIENT_SECRET",
    )
}


@pytest.fixture
def run(backend):
    """Invoke the CLI against the fake backend, optionally with an editor double."""
    runner = CliRunner()

    def invoke(*args, editor=None, base=BASE_ARGS, input=None):
        obj = {"transport": httpx.MockTransport(backend.handler), "editor": editor}
        return runner.invoke(cli.main, [*base, *args], obj=obj, env=CLEARED_ENV, input=input)

    return invoke


def replace_text(old, new):
    def editor(path):
        path.write_text(path.read_text(encoding="utf-8").replace(old, new, 1), encoding="utf-8")
        return 0

    return editor


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def test_retrieve_prints_json(run, backend):
    backend.add("GET", "/v1/datasets/abc", 200, {"id": "abc", "name": "Sales"})

    result = run("-t", "json", "dataset", "retrieve", "abc")

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"id": "abc", "name": "Sales"}


def test_list_passes_limit_and_offset(run, backend):
    backend.add("GET", "/v1/users", 200, [{"id": 1, "name": "Ann"}])

    result = run("-t", "csv", "user", "list", "-l", "10", "-o", "20")

    assert result.exit_code == 0, result.output
    assert result.stdout == "id,name\n1,Ann\n"
    params = backend.sent()[0].url.params
    assert (params["limit"], params["offset"]) == ("10", "20")


def test_list_all_follows_pages(run, backend):
    backend.add("GET", "/v1/projects", 200, [{"id": str(i)} for i in range(50)])
    backend.add("GET", "/v1/projects", 200, [{"id": "last"}])

    result = run("-t", "json", "workflow", "list-all")

    assert result.exit_code == 0, result.output
    assert len(json.loads(result.stdout)) == 51


def test_delete_requires_confirmation(run, backend):
    """Declining the prompt sends nothing."""
    result = run("dataset", "delete", "abc", input="n\n")

    assert result.exit_code != 0
    assert backend.sent() == []


def test_delete_with_yes(run, backend):
    backend.add("DELETE", "/v1/datasets/abc", 204)

    result = run("dataset", "delete", "abc", "--yes")

    assert result.exit_code == 0, result.output
    assert [r.method for r in backend.sent()] == ["DELETE"]


def test_update_through_editor(run, backend):
    backend.add("GET", "/v1/streams/5", 200, {"id": 5, "updateMethod": "APPEND"})
    backend.add("PATCH", "/v1/streams/5", 200, {"id": 5, "updateMethod": "REPLACE"})

    result = run(
        "-t",
        "json",
        "stream",
        "update",
        "5",
        editor=replace_text("updateMethod: APPEND", "updateMethod: REPLACE"),
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["updateMethod"] == "REPLACE"
    assert json.loads(backend.sent("PATCH")[0].content)["updateMethod"] == "REPLACE"


def test_account_create_uses_type_template(run, backend):
    backend.add("GET", "/v1/account-types/aws", 200, {"id": "aws", "name": "AWS"})
    backend.add("POST", "/v1/accounts", 201, {"id": "acc", "name": "Prod"})

    result = run(
        "-t",
        "json",
        "account",
        "create",
        "aws",
        editor=replace_text("Account Name", "Prod"),
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(backend.sent("POST")[0].content)
    assert payload["name"] == "Prod"
    assert payload["type"]["id"] == "aws"


def test_version_option(run):
    result = run("--version", base=[])

    assert result.exit_code == 0
    assert "domo" in result.output


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


def test_api_error_exit_code_and_correlation_id(run, backend):
    backend.add(
        "GET",
        "/v1/datasets/missing",
        404,
        {"status": 404, "message": "DataSet not found", "toe": "ABCD-1234"},
    )

    result = run("dataset", "retrieve", "missing")

    assert result.exit_code == cli.ExitCode.API
    assert "DataSet not found" in result.output
    assert "Correlation id: ABCD-1234" in result.output


def test_auth_error_exit_code(run, backend):
    backend.token_route = (401, {"error": "invalid_client"})

    result = run("user", "retrieve", "1")

    assert result.exit_code == cli.ExitCode.AUTH
    assert "authentication failed" in result.output


def test_transport_error_exit_code(run, backend):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    backend.add_handler("GET", "/v1/users/1", refuse)

    result = run("user", "retrieve", "1")

    assert result.exit_code == cli.ExitCode.TRANSPORT


def test_decode_error_exit_code(run, backend):
    backend.add("GET", "/v1/users/1", 200, "<html>maintenance</html>")

    result = run("user", "retrieve", "1")

    assert result.exit_code == cli.ExitCode.DECODE


def test_invalid_limit_exit_code(run, backend):
    result = run("user", "list", "-l", "0")

    assert result.exit_code == cli.ExitCode.INVALID_ARGUMENT
    assert backend.sent() == []


def test_missing_credentials_exit_code(run):
    result = run("user", "list", base=[])

    assert result.exit_code == cli.ExitCode.INVALID_ARGUMENT
    assert "invalid configuration" in result.output


def test_config_error_keeps_stdout_clean(run):
    """Failures are reported on stderr only, with no log noise on stdout."""
    result = run("user", "list", base=[])

    assert result.exit_code == cli.ExitCode.INVALID_ARGUMENT
    assert result.stdout == ""
    assert "Command failed" not in result.output


def test_subgroup_help_needs_no_credentials(run, backend):
    result = run("dataset", "--help", base=[])

    assert result.exit_code == 0, result.output
    assert "retrieve" in result.stdout
    assert backend.sent() == []


def test_cancelled_edit_exit_code_reports_document(run, backend):
    backend.add("GET", "/v1/users/1", 200, {"id": 1, "name": "Ann"})

    result = run("user", "update", "1", editor=lambda path: 0)

    assert result.exit_code == cli.ExitCode.EDIT
    assert "Your edits were kept in" in result.output
    assert backend.sent("PUT") == []


def test_stale_update_warns(run, backend):
    backend.add("GET", "/v1/users/1", 200, {"id": 1, "name": "Ann"})
    backend.add("GET", "/v1/users/1", 200, {"id": 1, "name": "Ann", "title": "CEO"})
    backend.add("PUT", "/v1/users/1", 200, {"id": 1, "name": "Anna"})

    result = run("user", "update", "1", editor=replace_text("name: Ann", "name: Anna"))

    assert result.exit_code == 0, result.output
    assert "changed remotely" in result.output


def test_unknown_command_is_usage_error(run):
    result = run("dataset", "frobnicate")

    assert result.exit_code == cli.ExitCode.USAGE


def test_exit_code_mapping_prefers_most_specific():
    """A validation failure is an edit failure, not a generic one."""
    assert cli.exit_code_for(ValidationError("bad")) is cli.ExitCode.EDIT


def test_unmapped_client_error_is_general_error():
    assert cli.exit_code_for(DomoError("unexpected")) is cli.ExitCode.GENERAL_ERROR
