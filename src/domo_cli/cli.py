"""Command-line interface for the Domo public API.

Commands have the shape ``domo <resource> <action> [ids] [flags]``. Create
and update actions open the object in the configured editor and submit it
once saved.

Exit codes are stable for scripting:

===  ==========================================
0    success
1    any other client error
2    usage error
3    authentication failure
4    API rejected the request
5    transport failure (server not reached)
6    edited document invalid or edit cancelled
7    response could not be decoded
8    invalid argument or configuration
===  ==========================================
"""

import enum
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
import httpx
import pydantic
import structlog

from . import __version__, output
from .config import ClientConfig, configure_logging, load_config
from .editing import Editor, EditWorkflow, ExternalEditor
from .publicapi import DomoApiClient, ResourceClient, types
from .publicapi.errors import (
    ApiError,
    AuthError,
    DecodeError,
    DomoError,
    EditAborted,
    InvalidArgument,
    TransportError,
)

logger = structlog.get_logger(__name__)


class ExitCode(enum.IntEnum):
    OK = 0
    GENERAL_ERROR = 1
    USAGE = 2
    AUTH = 3
    API = 4
    TRANSPORT = 5
    EDIT = 6
    DECODE = 7
    INVALID_ARGUMENT = 8


_EXIT_CODES: list[tuple[type[DomoError], ExitCode]] = [
    (AuthError, ExitCode.AUTH),
    (ApiError, ExitCode.API),
    (TransportError, ExitCode.TRANSPORT),
    (EditAborted, ExitCode.EDIT),
    (DecodeError, ExitCode.DECODE),
    (InvalidArgument, ExitCode.INVALID_ARGUMENT),
]


def exit_code_for(error: DomoError) -> ExitCode:
    """Map an error to its documented exit code."""
    for error_class, code in _EXIT_CODES:
        if isinstance(error, error_class):
            return code
    return ExitCode.GENERAL_ERROR


def report_error(error: DomoError) -> None:
    """Print an error for a person reading the terminal."""
    if isinstance(error, ApiError):
        click.echo(
            f"Error: the API rejected the request ({error.status_code} "
            f"{error.kind.value}): {error.remote_message}",
            err=True,
        )
        if error.correlation_id:
            click.echo(f"Correlation id: {error.correlation_id}", err=True)
    elif isinstance(error, AuthError):
        click.echo(f"Error: authentication failed: {error}", err=True)
        if error.remote_message:
            click.echo(f"Server said: {error.remote_message}", err=True)
    else:
        click.echo(f"Error: {error}", err=True)

    document_path = getattr(error, "document_path", None)
    if document_path is not None:
        click.echo(f"Your edits were kept in {document_path}", err=True)


def load_client_config(config_path: str | None, **overrides: Any) -> ClientConfig:
    """Load the configuration and apply its log level.

    Raises:
        InvalidArgument: If the file cannot be read or a setting is invalid.
    """
    try:
        config = load_config(config_path, **overrides)
    except (pydantic.ValidationError, OSError, ValueError) as exc:
        msg = f"invalid configuration: {exc}"
        raise InvalidArgument(msg) from exc
    configure_logging(config.log_level)
    return config


class AppContext:
    """State shared by all commands of one invocation.

    The configuration is loaded on first use, so commands that never reach
    the API (help, usage errors) work without credentials.
    """

    def __init__(
        self,
        settings: dict[str, Any],
        template: output.Template,
        transport: httpx.BaseTransport | None = None,
        editor: Editor | None = None,
    ):
        self._settings = settings
        self.template = template
        self._transport = transport
        self._editor = editor
        self._config: ClientConfig | None = None
        self._api: DomoApiClient | None = None

    @property
    def config(self) -> ClientConfig:
        if self._config is None:
            self._config = load_client_config(**self._settings)
        return self._config

    @property
    def api(self) -> DomoApiClient:
        if self._api is None:
            self._api = DomoApiClient(
                self.config.credentials(),
                scope=self.config.scope,
                timeout=self.config.timeout,
                transport=self._transport,
            )
        return self._api

    def close(self) -> None:
        if self._api is not None:
            self._api.close()

    def workflow(self, resource: ResourceClient) -> EditWorkflow:
        editor = self._editor or ExternalEditor(self.config.editor)
        return EditWorkflow(resource, editor)

    def emit(self, result: Any, renderer: Callable[..., str] = output.render) -> None:
        click.echo(renderer(result, self.template), nl=False)

    def edit_create(self, resource: ResourceClient, template: types.DomoModel) -> None:
        self.emit(self.workflow(resource).create(template))

    def edit_update(self, resource: ResourceClient, resource_id: str) -> None:
        workflow = self.workflow(resource)
        result = workflow.update(resource_id)
        if workflow.stale:
            click.echo(
                f"Warning: {resource.name} {resource_id} changed remotely while "
                "you were editing; your version was submitted.",
                err=True,
            )
        self.emit(result)


pass_app = click.make_pass_decorator(AppContext)


class DomoGroup(click.Group):
    """Root group that turns client errors into exit codes."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except DomoError as exc:
            logger.debug("Command failed", command=ctx.invoked_subcommand, error=repr(exc))
            report_error(exc)
            ctx.exit(int(exit_code_for(exc)))


def _limit_options(func: Callable) -> Callable:
    func = click.option("-o", "--offset", type=int, help="Offset of the first item.")(func)
    return click.option("-l", "--limit", type=int, help="Number of items (1-500).")(func)


def _confirm_option(func: Callable) -> Callable:
    return click.option("--yes", is_flag=True, help="Do not ask for confirmation.")(func)


def _confirm_delete(what: str, yes: bool) -> None:
    if not yes:
        click.confirm(f"Permanently delete {what}?", abort=True)


def add_crud_commands(
    group: click.Group,
    resource_of: Callable[[AppContext], ResourceClient],
    template_of: Callable[[AppContext], types.DomoModel] | None,
    name: str,
) -> None:
    """Register list/list-all/create/retrieve/update/delete on ``group``."""

    @group.command("list", help=f"Get a page of {name}s.")
    @_limit_options
    @pass_app
    def list_cmd(app: AppContext, limit: int | None, offset: int | None) -> None:
        app.emit(resource_of(app).list(limit=limit, offset=offset))

    @group.command("list-all", help=f"Get every {name}, page by page.")
    @pass_app
    def list_all_cmd(app: AppContext) -> None:
        app.emit(list(resource_of(app).iter_all()))

    if template_of is not None:

        @group.command("create", help=f"Create a {name} in your editor.")
        @pass_app
        def create_cmd(app: AppContext) -> None:
            app.edit_create(resource_of(app), template_of(app))

    @group.command("retrieve", help=f"Retrieve the details of a {name}.")
    @click.argument("resource_id")
    @pass_app
    def retrieve_cmd(app: AppContext, resource_id: str) -> None:
        app.emit(resource_of(app).get(resource_id))

    @group.command("update", help=f"Update a {name} in your editor.")
    @click.argument("resource_id")
    @pass_app
    def update_cmd(app: AppContext, resource_id: str) -> None:
        app.edit_update(resource_of(app), resource_id)

    @group.command("delete", help=f"Permanently delete a {name}.")
    @click.argument("resource_id")
    @_confirm_option
    @pass_app
    def delete_cmd(app: AppContext, resource_id: str, yes: bool) -> None:
        _confirm_delete(f"{name} {resource_id}", yes)
        resource_of(app).delete(resource_id)


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@click.group(cls=DomoGroup)
@click.version_option(__version__, prog_name="domo")
@click.option(
    "--host",
    envvar=["DOMO_API_HOST", "API_HOST"],
    help="API host (default https://api.domo.com).",
)
@click.option("--client-id", envvar=["DOMO_API_CLIENT_ID", "API_CLIENT_ID"])
@click.option("--client-secret", envvar=["DOMO_API_CLIENT_SECRET", "API_CLIENT_SECRET"])
@click.option("--editor", help="Editor command (default $DOMO_EDITOR, $VISUAL, $EDITOR, vi).")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="JSON configuration file (default $DOMO_CONFIG_PATH).",
)
@click.option("--log-level", help="Logging level (default WARNING).")
@click.option(
    "-t",
    "--template",
    type=click.Choice([t.value for t in output.Template]),
    default=output.Template.YAML.value,
    show_default=True,
    help="Output format.",
)
@click.pass_context
def main(
    ctx: click.Context,
    host: str | None,
    client_id: str | None,
    client_secret: str | None,
    editor: str | None,
    config_path: str | None,
    log_level: str | None,
    template: str,
) -> None:
    """Work with the Domo public API from the command line.

    Create a client at https://developer.domo.com and export its id and
    secret as DOMO_API_CLIENT_ID and DOMO_API_CLIENT_SECRET.
    """
    # Reconfigured with the file's level once the configuration is loaded.
    configure_logging(log_level or "WARNING")
    injected = ctx.obj if isinstance(ctx.obj, dict) else {}
    settings = {
        "config_path": config_path,
        "host": host,
        "client_id": client_id,
        "client_secret": client_secret,
        "editor": editor,
        "log_level": log_level,
    }
    app = AppContext(
        settings,
        output.Template(template),
        transport=injected.get("transport"),
        editor=injected.get("editor"),
    )
    ctx.obj = app
    ctx.call_on_close(app.close)


# ---------------------------------------------------------------------------
# Datasets
# ---------------------------------------------------------------------------


@main.group("dataset")
def dataset_group() -> None:
    """Wraps the dataset api."""


add_crud_commands(
    dataset_group,
    lambda app: app.api.datasets,
    lambda app: types.Dataset.template(),
    "dataset",
)


@dataset_group.command("query")
@click.argument("dataset_id")
@click.argument("sql")
@pass_app
def dataset_query(app: AppContext, dataset_id: str, sql: str) -> None:
    """Return data from the dataset based on an SQL query."""
    app.emit(app.api.datasets.query(dataset_id, sql), output.render_query)


@dataset_group.command("export")
@click.argument("dataset_id")
@pass_app
def dataset_export(app: AppContext, dataset_id: str) -> None:
    """Export the data of a dataset."""
    app.emit(app.api.datasets.export(dataset_id), output.render_csv_text)


@dataset_group.command("import")
@click.argument("dataset_id")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@pass_app
def dataset_import(app: AppContext, dataset_id: str, file: Path) -> None:
    """Replace the data of a dataset with a CSV file."""
    app.api.datasets.import_data(dataset_id, file.read_text(encoding="utf-8"))


@dataset_group.command("list-policies")
@click.argument("dataset_id")
@pass_app
def dataset_list_policies(app: AppContext, dataset_id: str) -> None:
    """List the PDP policies of a dataset."""
    app.emit(app.api.datasets.policies(dataset_id).list())


@dataset_group.command("create-policy")
@click.argument("dataset_id")
@pass_app
def dataset_create_policy(app: AppContext, dataset_id: str) -> None:
    """Create a PDP policy in your editor. Users and groups must exist."""
    app.edit_create(app.api.datasets.policies(dataset_id), types.Policy.template())


@dataset_group.command("retrieve-policy")
@click.argument("dataset_id")
@click.argument("policy_id")
@pass_app
def dataset_retrieve_policy(app: AppContext, dataset_id: str, policy_id: str) -> None:
    """Retrieve a PDP policy of a dataset."""
    app.emit(app.api.datasets.policies(dataset_id).get(policy_id))


@dataset_group.command("update-policy")
@click.argument("dataset_id")
@click.argument("policy_id")
@pass_app
def dataset_update_policy(app: AppContext, dataset_id: str, policy_id: str) -> None:
    """Update a PDP policy in your editor."""
    app.edit_update(app.api.datasets.policies(dataset_id), policy_id)


@dataset_group.command("delete-policy")
@click.argument("dataset_id")
@click.argument("policy_id")
@_confirm_option
@pass_app
def dataset_delete_policy(app: AppContext, dataset_id: str, policy_id: str, yes: bool) -> None:
    """Permanently delete a PDP policy."""
    _confirm_delete(f"policy {policy_id} of dataset {dataset_id}", yes)
    app.api.datasets.policies(dataset_id).delete(policy_id)


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------


@main.group("stream")
def stream_group() -> None:
    """Wraps the stream api."""


add_crud_commands(
    stream_group,
    lambda app: app.api.streams,
    lambda app: types.Stream.template(),
    "stream",
)


@stream_group.command("search-ids")
@click.argument("dataset_id")
@pass_app
def stream_search_ids(app: AppContext, dataset_id: str) -> None:
    """Find the streams feeding a dataset."""
    app.emit(app.api.streams.search_by_dataset(dataset_id))


@stream_group.command("search-owners")
@click.argument("owner_id")
@pass_app
def stream_search_owners(app: AppContext, owner_id: str) -> None:
    """Find the streams whose dataset has the given owner."""
    app.emit(app.api.streams.search_by_owner(owner_id))


@stream_group.command("list-executions")
@click.argument("stream_id")
@_limit_options
@pass_app
def stream_list_executions(
    app: AppContext,
    stream_id: str,
    limit: int | None,
    offset: int | None,
) -> None:
    """List the executions of a stream."""
    app.emit(app.api.streams.executions(stream_id).list(limit=limit, offset=offset))


@stream_group.command("create-execution")
@click.argument("stream_id")
@pass_app
def stream_create_execution(app: AppContext, stream_id: str) -> None:
    """Start an execution; this aborts any other execution of the stream."""
    app.emit(app.api.streams.executions(stream_id).start())


@stream_group.command("retrieve-execution")
@click.argument("stream_id")
@click.argument("execution_id")
@pass_app
def stream_retrieve_execution(app: AppContext, stream_id: str, execution_id: str) -> None:
    """Retrieve an execution of a stream."""
    app.emit(app.api.streams.executions(stream_id).get(execution_id))


@stream_group.command("upload-part")
@click.argument("stream_id")
@click.argument("execution_id")
@click.argument("part_id", type=int)
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@pass_app
def stream_upload_part(
    app: AppContext,
    stream_id: str,
    execution_id: str,
    part_id: int,
    file: Path,
) -> None:
    """Upload a CSV file as one numbered part of an execution."""
    executions = app.api.streams.executions(stream_id)
    executions.upload_part(execution_id, part_id, file.read_text(encoding="utf-8"))


@stream_group.command("commit-execution")
@click.argument("stream_id")
@click.argument("execution_id")
@pass_app
def stream_commit_execution(app: AppContext, stream_id: str, execution_id: str) -> None:
    """Commit an execution so its parts are imported."""
    app.emit(app.api.streams.executions(stream_id).commit(execution_id))


@stream_group.command("abort-execution")
@click.argument("stream_id")
@click.argument("execution_id")
@pass_app
def stream_abort_execution(app: AppContext, stream_id: str, execution_id: str) -> None:
    """Abort an execution."""
    app.api.streams.executions(stream_id).abort(execution_id)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@main.group("user")
def user_group() -> None:
    """Wraps the user api."""


add_crud_commands(
    user_group,
    lambda app: app.api.users,
    lambda app: types.User.template(),
    "user",
)


@user_group.command("bulk-emails")
@click.argument("emails", nargs=-1, required=True)
@pass_app
def user_bulk_emails(app: AppContext, emails: tuple[str, ...]) -> None:
    """Fetch users by email address."""
    app.emit(app.api.users.bulk_by_email(emails))


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@main.group("account")
def account_group() -> None:
    """Wraps the account api."""


add_crud_commands(account_group, lambda app: app.api.accounts, None, "account")


@account_group.command("create")
@click.argument("account_type")
@pass_app
def account_create(app: AppContext, account_type: str) -> None:
    """Create an account of the given type in your editor.

    The properties the account type requires are pre-filled with TODO
    placeholders.
    """
    accounts = app.api.accounts
    app.edit_create(accounts, accounts.template_for(account_type))


@account_group.command("share")
@click.argument("account_id")
@click.argument("user_id", type=int)
@pass_app
def account_share(app: AppContext, account_id: str, user_id: int) -> None:
    """Share an account with a user."""
    app.api.accounts.share(account_id, user_id)


@account_group.command("list-types")
@_limit_options
@pass_app
def account_list_types(app: AppContext, limit: int | None, offset: int | None) -> None:
    """List the account types."""
    app.emit(app.api.accounts.account_types.list(limit=limit, offset=offset))


@account_group.command("retrieve-type")
@click.argument("account_type_id")
@pass_app
def account_retrieve_type(app: AppContext, account_type_id: str) -> None:
    """Retrieve an account type and the properties it requires."""
    app.emit(app.api.accounts.account_types.get(account_type_id))


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


@main.group("workflow")
def workflow_group() -> None:
    """Wraps the workflow (projects and tasks) api."""


add_crud_commands(
    workflow_group,
    lambda app: app.api.projects,
    lambda app: types.Project.template(),
    "project",
)


@workflow_group.command("list-members")
@click.argument("project_id")
@pass_app
def workflow_list_members(app: AppContext, project_id: str) -> None:
    """List the user ids of a project's members."""
    app.emit(app.api.projects.members(project_id))


@workflow_group.command("list-lists")
@click.argument("project_id")
@pass_app
def workflow_list_lists(app: AppContext, project_id: str) -> None:
    """List the lists of a project."""
    app.emit(app.api.projects.lists(project_id).list())


@workflow_group.command("create-list")
@click.argument("project_id")
@pass_app
def workflow_create_list(app: AppContext, project_id: str) -> None:
    """Create a list in your editor."""
    app.edit_create(app.api.projects.lists(project_id), types.ProjectList.template())


@workflow_group.command("retrieve-list")
@click.argument("project_id")
@click.argument("list_id")
@pass_app
def workflow_retrieve_list(app: AppContext, project_id: str, list_id: str) -> None:
    """Retrieve a list of a project."""
    app.emit(app.api.projects.lists(project_id).get(list_id))


@workflow_group.command("update-list")
@click.argument("project_id")
@click.argument("list_id")
@pass_app
def workflow_update_list(app: AppContext, project_id: str, list_id: str) -> None:
    """Update a list in your editor."""
    app.edit_update(app.api.projects.lists(project_id), list_id)


@workflow_group.command("delete-list")
@click.argument("project_id")
@click.argument("list_id")
@_confirm_option
@pass_app
def workflow_delete_list(app: AppContext, project_id: str, list_id: str, yes: bool) -> None:
    """Permanently delete a list."""
    _confirm_delete(f"list {list_id} of project {project_id}", yes)
    app.api.projects.lists(project_id).delete(list_id)


@workflow_group.command("list-tasks")
@click.argument("project_id")
@click.argument("list_id", required=False)
@_limit_options
@pass_app
def workflow_list_tasks(
    app: AppContext,
    project_id: str,
    list_id: str | None,
    limit: int | None,
    offset: int | None,
) -> None:
    """List the tasks of a project, or of one of its lists."""
    projects = app.api.projects
    if list_id is None:
        tasks = projects.tasks(project_id)
    else:
        tasks = projects.list_tasks(project_id, list_id)
    app.emit(tasks.list(limit=limit, offset=offset))


if __name__ == "__main__":
    main()
