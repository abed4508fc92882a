"""Per-resource facades over the request pipeline.

Every resource family exposes the same list/get/create/update/delete
capabilities and differs only in its path, payload model, update verb and
whether listing is paginated. :class:`ResourceClient` implements those once;
the subclasses below add the few endpoints that do not fit the pattern.
"""

from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Generic, TypeVar

from . import types
from .errors import DecodeError, InvalidArgument
from .pagination import DEFAULT_PAGE_SIZE, PageCursor, check_page_args
from .request import RequestDescriptor, ResponseShape

if TYPE_CHECKING:
    from .client import DomoApiClient

M = TypeVar("M", bound=types.DomoModel)


class ResourceClient(Generic[M]):
    """CRUD operations on one collection of the API."""

    def __init__(
        self,
        api: "DomoApiClient",
        name: str,
        path: str,
        model: type[M],
        update_method: str = "PUT",
        paginated: bool = True,
    ):
        """Initialize the resource client.

        Args:
            api: Client that executes the requests.
            name: Human-readable resource name (e.g. "dataset").
            path: Collection path (e.g. "/v1/datasets").
            model: Model the collection's objects are decoded into.
            update_method: HTTP verb used for updates (PUT or PATCH).
            paginated: Whether the list endpoint accepts limit/offset.
        """
        self.api = api
        self.name = name
        self.path = path
        self.model = model
        self.update_method = update_method
        self.paginated = paginated

    def __repr__(self) -> str:
        return f"{type(self).__name__}(path={self.path!r})"

    def _item_path(self, resource_id: object) -> str:
        return f"{self.path}/{resource_id}"

    def list(self, limit: int | None = None, offset: int | None = None) -> list[M]:
        """Fetch one page of the collection.

        Raises:
            InvalidArgument: If limit is zero or out of range, or paging
                arguments are given for an unpaginated collection.
        """
        params: list[tuple[str, str]] = []
        if limit is not None or offset is not None:
            if not self.paginated:
                msg = f"{self.name} listing does not support limit/offset"
                raise InvalidArgument(msg)
            check_page_args(limit, offset)
            if limit is not None:
                params.append(("limit", str(limit)))
            if offset is not None:
                params.append(("offset", str(offset)))

        return self.api.execute(
            RequestDescriptor(
                method="GET",
                path=self.path,
                params=tuple(params),
                shape=ResponseShape.LIST,
                model=self.model,
            ),
        )

    def pages(self, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> PageCursor[M]:
        """Return a cursor over the pages of the collection."""
        if not self.paginated:
            msg = f"{self.name} listing is not paginated"
            raise InvalidArgument(msg)
        return PageCursor(lambda lim, off: self.list(limit=lim, offset=off), limit, offset)

    def iter_all(self, limit: int = DEFAULT_PAGE_SIZE) -> Iterator[M]:
        """Iterate over every object in the collection."""
        if not self.paginated:
            return iter(self.list())
        return self.pages(limit=limit).items()

    def get(self, resource_id: object) -> M:
        return self.api.execute(
            RequestDescriptor(
                method="GET",
                path=self._item_path(resource_id),
                model=self.model,
            ),
        )

    def create(self, obj: M) -> M:
        return self.api.execute(
            RequestDescriptor(
                method="POST",
                path=self.path,
                json=obj.to_api(),
                model=self.model,
            ),
        )

    def update(self, resource_id: object, obj: M) -> M:
        return self.api.execute(
            RequestDescriptor(
                method=self.update_method,
                path=self._item_path(resource_id),
                json=obj.to_api(),
                model=self.model,
            ),
        )

    def delete(self, resource_id: object) -> None:
        """Permanently delete an object. This cannot be reversed."""
        self.api.execute(
            RequestDescriptor(
                method="DELETE",
                path=self._item_path(resource_id),
                shape=ResponseShape.NONE,
            ),
        )


# ---------------------------------------------------------------------------
# Datasets
# ---------------------------------------------------------------------------


class DatasetResource(ResourceClient[types.Dataset]):
    """Datasets, their data and their PDP policies."""

    def __init__(self, api: "DomoApiClient"):
        super().__init__(api, "dataset", "/v1/datasets", types.Dataset)

    def policies(self, dataset_id: str) -> ResourceClient[types.Policy]:
        """PDP policies of one dataset."""
        return ResourceClient(
            self.api,
            "policy",
            f"{self._item_path(dataset_id)}/policies",
            types.Policy,
            paginated=False,
        )

    def query(self, dataset_id: str, sql: str) -> types.QueryResult:
        """Run a SQL query against a dataset."""
        return self.api.execute(
            RequestDescriptor(
                method="POST",
                path=f"{self.path}/query/execute/{dataset_id}",
                json={"sql": sql},
                model=types.QueryResult,
            ),
        )

    def export(self, dataset_id: str, include_header: bool = True) -> str:
        """Export the dataset's data as CSV text."""
        return self.api.execute(
            RequestDescriptor(
                method="GET",
                path=f"{self._item_path(dataset_id)}/data",
                params=(("includeHeader", str(include_header).lower()),),
                shape=ResponseShape.TEXT,
            ),
        )

    def import_data(self, dataset_id: str, csv_text: str) -> None:
        """Replace the dataset's data with ``csv_text`` (RFC-4180 CSV)."""
        self.api.execute(
            RequestDescriptor(
                method="PUT",
                path=f"{self._item_path(dataset_id)}/data",
                content=csv_text,
                content_type="text/csv",
                shape=ResponseShape.NONE,
            ),
        )


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------


class ExecutionResource(ResourceClient[types.Execution]):
    """Upload executions of one stream.

    Only one execution is active per stream; starting a new one aborts the
    others.
    """

    def __init__(self, api: "DomoApiClient", stream_path: str):
        super().__init__(api, "execution", f"{stream_path}/executions", types.Execution)

    def start(self) -> types.Execution:
        """Create a new execution, ready to receive data parts."""
        return self.api.execute(
            RequestDescriptor(
                method="POST",
                path=self.path,
                json={},
                model=types.Execution,
            ),
        )

    def upload_part(self, execution_id: object, part_id: object, csv_text: str) -> None:
        """Upload one CSV chunk; parts are ordered by increasing ``part_id``."""
        self.api.execute(
            RequestDescriptor(
                method="PUT",
                path=f"{self._item_path(execution_id)}/part/{part_id}",
                content=csv_text,
                content_type="text/csv",
                shape=ResponseShape.NONE,
            ),
        )

    def commit(self, execution_id: object) -> types.Execution:
        """Commit the execution so the uploaded parts are imported."""
        return self.api.execute(
            RequestDescriptor(
                method="PUT",
                path=f"{self._item_path(execution_id)}/commit",
                model=types.Execution,
            ),
        )

    def abort(self, execution_id: object) -> None:
        self.api.execute(
            RequestDescriptor(
                method="PUT",
                path=f"{self._item_path(execution_id)}/abort",
                shape=ResponseShape.NONE,
            ),
        )


class StreamResource(ResourceClient[types.Stream]):
    """Streams and their upload executions."""

    def __init__(self, api: "DomoApiClient"):
        super().__init__(api, "stream", "/v1/streams", types.Stream, update_method="PATCH")

    def executions(self, stream_id: object) -> ExecutionResource:
        return ExecutionResource(self.api, self._item_path(stream_id))

    def _search(self, query: str) -> list[types.Stream]:
        return self.api.execute(
            RequestDescriptor(
                method="GET",
                path=f"{self.path}/search",
                params=(("q", query),),
                shape=ResponseShape.LIST,
                model=types.Stream,
            ),
        )

    def search_by_dataset(self, dataset_id: str) -> list[types.Stream]:
        """Return the streams feeding the given dataset."""
        return self._search(f"dataSource.id:{dataset_id}")

    def search_by_owner(self, owner_id: object) -> list[types.Stream]:
        """Return the streams whose dataset is owned by the given user."""
        return self._search(f"dataSource.owner.id:{owner_id}")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserResource(ResourceClient[types.User]):
    def __init__(self, api: "DomoApiClient"):
        super().__init__(api, "user", "/v1/users", types.User)

    def bulk_by_email(self, emails: Sequence[str]) -> list[types.User]:
        """Fetch the users matching the given email addresses."""
        return self.api.execute(
            RequestDescriptor(
                method="POST",
                path=f"{self.path}/bulk/emails",
                json=list(emails),
                shape=ResponseShape.LIST,
                model=types.User,
            ),
        )


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class AccountResource(ResourceClient[types.Account]):
    """Accounts, their sharing and the account types they are built from."""

    def __init__(self, api: "DomoApiClient"):
        super().__init__(api, "account", "/v1/accounts", types.Account, update_method="PATCH")
        self.account_types = ResourceClient(
            api,
            "account type",
            "/v1/account-types",
            types.AccountType,
        )

    def share(self, account_id: str, user_id: int) -> None:
        """Share an account with a user."""
        self.api.execute(
            RequestDescriptor(
                method="POST",
                path=f"{self._item_path(account_id)}/shares",
                json={"user": {"id": user_id}},
                shape=ResponseShape.NONE,
            ),
        )

    def template_for(self, account_type_id: str) -> types.Account:
        """Build a create template for an account of the given type.

        The type's ``default`` template lists the properties the account
        needs; each is pre-filled with a TODO placeholder quoting its prompt.
        """
        account_type = self.account_types.get(account_type_id)
        default = (account_type.templates or {}).get("default")
        if default is not None and default.properties:
            account_type.properties = {
                prop.name: f"TODO: {prop.prompt or prop.name}"
                for prop in default.properties
                if prop.name
            }
        account_type.templates = None
        return types.Account.template(account_type=account_type)


# ---------------------------------------------------------------------------
# Workflow (projects, lists and tasks)
# ---------------------------------------------------------------------------


class ProjectResource(ResourceClient[types.Project]):
    """Workflow projects and the lists and tasks they contain."""

    def __init__(self, api: "DomoApiClient"):
        super().__init__(api, "project", "/v1/projects", types.Project)

    def members(self, project_id: str) -> list[int]:
        """Return the user ids of the project's members."""
        members = self.api.execute(
            RequestDescriptor(
                method="GET",
                path=f"{self._item_path(project_id)}/members",
                shape=ResponseShape.LIST,
            ),
        )
        try:
            return [int(member) for member in members]
        except (TypeError, ValueError) as exc:
            msg = f"project members are not user ids: {members!r:.200}"
            raise DecodeError(msg) from exc

    def lists(self, project_id: str) -> ResourceClient[types.ProjectList]:
        return ResourceClient(
            self.api,
            "list",
            f"{self._item_path(project_id)}/lists",
            types.ProjectList,
            paginated=False,
        )

    def tasks(self, project_id: str) -> ResourceClient[types.Task]:
        """All tasks of a project, across its lists (read-only listing)."""
        return ResourceClient(
            self.api,
            "task",
            f"{self._item_path(project_id)}/tasks",
            types.Task,
        )

    def list_tasks(self, project_id: str, list_id: object) -> ResourceClient[types.Task]:
        """Tasks of one list of a project."""
        return ResourceClient(
            self.api,
            "task",
            f"{self._item_path(project_id)}/lists/{list_id}/tasks",
            types.Task,
        )
