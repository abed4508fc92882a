"""Tests for the per-resource paths, verbs and extra endpoints."""

import json

import pytest

from domo_cli.publicapi import DecodeError, InvalidArgument, types

# ---------------------------------------------------------------------------
# Shared CRUD
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("attr", "path", "verb", "body"),
    [
        ("datasets", "/v1/datasets/abc", "PUT", {"id": "abc", "name": "n"}),
        ("streams", "/v1/streams/abc", "PATCH", {"id": 1, "updateMethod": "APPEND"}),
        ("users", "/v1/users/abc", "PUT", {"id": 1, "name": "n"}),
        ("accounts", "/v1/accounts/abc", "PATCH", {"id": "abc", "name": "n"}),
        ("projects", "/v1/projects/abc", "PUT", {"id": "abc", "name": "n"}),
    ],
)
def test_update_uses_resource_verb(api, backend, attr, path, verb, body):
    """Each resource family updates with its own HTTP verb."""
    resource = getattr(api, attr)
    backend.add(verb, path, 200, body)

    resource.update("abc", resource.model.model_validate(body))

    (request,) = backend.sent()
    assert request.method == verb
    assert request.url.path == path
    assert json.loads(request.content) == body


def test_create_posts_wire_form(api, backend):
    """create() sends camelCase aliases and omits unset fields."""
    backend.add("POST", "/v1/datasets", 201, {"id": "new", "name": "DataSet Name"})

    created = api.datasets.create(types.Dataset.template())

    assert created.id == "new"
    payload = json.loads(backend.sent()[0].content)
    assert payload["schema"]["columns"][0]["name"] == "Column Name"
    assert "id" not in payload
    assert "pdpEnabled" not in payload


def test_get_and_delete_paths(api, backend):
    """get and delete address the item path."""
    backend.add("GET", "/v1/users/7", 200, {"id": 7, "email": "a@b.c"})
    backend.add("DELETE", "/v1/users/7", 204)

    user = api.users.get(7)
    api.users.delete(7)

    assert user.email == "a@b.c"
    assert [(r.method, r.url.path) for r in backend.sent()] == [
        ("GET", "/v1/users/7"),
        ("DELETE", "/v1/users/7"),
    ]


# ---------------------------------------------------------------------------
# Datasets
# ---------------------------------------------------------------------------


def test_policies_are_nested_and_unpaginated(api, backend):
    """Policies live under their dataset and cannot be paged."""
    backend.add(
        "GET",
        "/v1/datasets/abc/policies",
        200,
        [{"id": 1, "name": "All Rows", "type": "open", "filters": []}],
    )
    policies = api.datasets.policies("abc")

    (policy,) = policies.list()

    assert policy.policy_type == "open"
    with pytest.raises(InvalidArgument):
        policies.list(limit=10)
    with pytest.raises(InvalidArgument):
        policies.pages()


def test_query_posts_sql(api, backend):
    """query() posts the SQL and decodes the result grid."""
    backend.add(
        "POST",
        "/v1/datasets/query/execute/abc",
        200,
        {"columns": ["a", "b"], "rows": [[1, "x"]], "numRows": 1, "numColumns": 2},
    )

    result = api.datasets.query("abc", "SELECT * FROM table")

    assert json.loads(backend.sent()[0].content) == {"sql": "SELECT * FROM table"}
    assert result.rows == [[1, "x"]]
    assert result.num_rows == 1


def test_export_and_import_data(api, backend):
    """Data moves as CSV text in both directions."""
    backend.add("GET", "/v1/datasets/abc/data", 200, "a,b\n1,2\n")
    backend.add("PUT", "/v1/datasets/abc/data", 204)

    exported = api.datasets.export("abc")
    api.datasets.import_data("abc", exported)

    get, put = backend.sent()
    assert get.url.params["includeHeader"] == "true"
    assert put.headers["Content-Type"] == "text/csv"
    assert put.content == b"a,b\n1,2\n"


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------


def test_execution_lifecycle_paths(api, backend):
    """Executions are started, fed parts, then committed under their stream."""
    backend.add("POST", "/v1/streams/9/executions", 201, {"id": 3, "currentState": "ACTIVE"})
    backend.add("PUT", "/v1/streams/9/executions/3/part/1", 200)
    committed_body = {"id": 3, "currentState": "SUCCESS"}
    backend.add("PUT", "/v1/streams/9/executions/3/commit", 200, committed_body)
    executions = api.streams.executions(9)

    execution = executions.start()
    executions.upload_part(execution.id, 1, "a,b\n1,2\n")
    committed = executions.commit(execution.id)

    assert committed.current_state == "SUCCESS"
    assert [r.url.path for r in backend.sent()] == [
        "/v1/streams/9/executions",
        "/v1/streams/9/executions/3/part/1",
        "/v1/streams/9/executions/3/commit",
    ]


def test_abort_execution(api, backend):
    backend.add("PUT", "/v1/streams/9/executions/3/abort", 200)

    assert api.streams.executions(9).abort(3) is None


def test_stream_search_queries(api, backend):
    """Stream searches filter by dataset id or by dataset owner."""
    backend.add("GET", "/v1/streams/search", 200, [{"id": 1, "dataSet": {"id": "abc"}}])

    (stream,) = api.streams.search_by_dataset("abc")
    api.streams.search_by_owner(27)

    assert stream.dataset.id == "abc"
    queries = [r.url.params["q"] for r in backend.sent()]
    assert queries == ["dataSource.id:abc", "dataSource.owner.id:27"]


# ---------------------------------------------------------------------------
# Users and accounts
# ---------------------------------------------------------------------------


def test_bulk_by_email(api, backend):
    backend.add("POST", "/v1/users/bulk/emails", 200, [{"id": 1, "email": "a@b.c"}])

    users = api.users.bulk_by_email(["a@b.c"])

    assert users[0].id == 1
    assert json.loads(backend.sent()[0].content) == ["a@b.c"]


def test_share_account(api, backend):
    """Sharing posts the user reference to the account's shares."""
    backend.add("POST", "/v1/accounts/acc/shares", 204)

    api.accounts.share("acc", 27)

    assert json.loads(backend.sent()[0].content) == {"user": {"id": 27}}


def test_template_for_prefills_required_properties(api, backend):
    """An account template lists the type's properties with TODO prompts."""
    backend.add(
        "GET",
        "/v1/account-types/aws",
        200,
        {
            "id": "aws",
            "name": "Amazon Web Services",
            "_templates": {
                "default": {
                    "properties": [
                        {"name": "accessKey", "prompt": "Access Key"},
                        {"name": "secretKey"},
                    ],
                },
            },
        },
    )

    account = api.accounts.template_for("aws")

    wire = account.to_api()
    assert wire["name"] == "Account Name"
    assert wire["type"]["id"] == "aws"
    assert wire["type"]["properties"] == {
        "accessKey": "TODO: Access Key",
        "secretKey": "TODO: secretKey",
    }
    assert "_templates" not in wire["type"]


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


def test_project_members_are_user_ids(api, backend):
    backend.add("GET", "/v1/projects/p1/members", 200, [27, "28"])

    assert api.projects.members("p1") == [27, 28]


def test_project_members_reject_non_ids(api, backend):
    """Members that are not integers are a decode failure."""
    backend.add("GET", "/v1/projects/p1/members", 200, [{"id": 27}])

    with pytest.raises(DecodeError, match="user ids"):
        api.projects.members("p1")


def test_project_lists_and_tasks(api, backend):
    """Lists are unpaginated; tasks can be listed per project or per list."""
    backend.add("GET", "/v1/projects/p1/lists", 200, [{"id": 4, "name": "Todo", "type": "TODO"}])
    backend.add("GET", "/v1/projects/p1/tasks", 200, [{"id": 1, "taskName": "a"}])
    backend.add("GET", "/v1/projects/p1/lists/4/tasks", 200, [{"id": 2, "taskName": "b"}])

    (project_list,) = api.projects.lists("p1").list()
    all_tasks = api.projects.tasks("p1").list(limit=10)
    list_tasks = api.projects.list_tasks("p1", project_list.id).list()

    assert project_list.list_type == "TODO"
    assert [t.task_name for t in all_tasks] == ["a"]
    assert [t.task_name for t in list_tasks] == ["b"]
    assert backend.sent()[1].url.params["limit"] == "10"
