"""Data shapes exchanged with the Domo public API.

Pydantic models mirroring the JSON bodies of each resource. Field names are
snake_case in Python and camelCase on the wire. Unknown fields are kept
(``extra="allow"``) so that objects fetched from the API survive an edit and
resubmit unchanged even when the API grows new attributes.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DomoModel(BaseModel):
    """Base model for all API payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_api(self) -> dict[str, Any]:
        """Dump the model in wire form, omitting unset (None) fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


# ---------------------------------------------------------------------------
# Datasets
# ---------------------------------------------------------------------------


class Owner(DomoModel):
    """Owner of a dataset."""

    id: int | None = None
    name: str | None = None


class Column(DomoModel):
    """Single column of a dataset schema.

    Valid types are STRING, DECIMAL, LONG, DOUBLE, DATE and DATETIME.
    """

    name: str | None = None
    column_type: str | None = Field(None, alias="type")


class Schema(DomoModel):
    columns: list[Column] | None = None


class Filter(DomoModel):
    """PDP policy filter."""

    column: str | None = None
    not_: bool | None = Field(None, alias="not")
    operator: str | None = None
    values: list[str] | None = None


class Policy(DomoModel):
    """Personalized Data Permission (PDP) policy attached to a dataset."""

    id: int | None = None
    name: str | None = None
    policy_type: str | None = Field(None, alias="type")
    filters: list[Filter] | None = None
    users: list[int] | None = None
    groups: list[int] | None = None

    @classmethod
    def template(cls) -> "Policy":
        return cls(
            name="Policy Name",
            policy_type="user | system",
            filters=[
                Filter(
                    column="Column to filter on",
                    not_=False,
                    operator="EQUALS",
                    values=["values in this column that match will apply"],
                ),
            ],
            users=[27],
            groups=[15],
        )


class Dataset(DomoModel):
    """A Domo DataSet.

    Timestamps are ISO-8601; ``rows`` and ``columns`` are counts maintained
    by the server.
    """

    id: str | None = None
    name: str | None = None
    description: str | None = None
    owner: Owner | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    data_current_at: datetime | None = None
    schema_: Schema | None = Field(None, alias="schema")
    pdp_enabled: bool | None = None
    policies: list[Policy] | None = None
    rows: int | None = None
    columns: int | None = None

    @classmethod
    def template(cls) -> "Dataset":
        return cls(
            name="DataSet Name",
            description="DataSet Description",
            schema_=Schema(
                columns=[
                    Column(
                        name="Column Name",
                        column_type="STRING | DECIMAL | LONG | DOUBLE | DATE | DATETIME",
                    ),
                ],
            ),
        )


class QueryMetadata(DomoModel):
    column_type: str | None = Field(None, alias="type")
    datasource_id: str | None = None
    max_length: int | None = None
    min_length: int | None = None
    period_index: int | None = None


class QueryResult(DomoModel):
    """Result set of a SQL query run against a dataset."""

    datasource: str | None = None
    columns: list[str] | None = None
    metadata: list[QueryMetadata] | None = None
    rows: list[list[Any]] | None = None
    num_rows: int | None = None
    num_columns: int | None = None
    from_cache: bool | None = None


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------


class Stream(DomoModel):
    """A Stream feeding a dataset with partitioned uploads.

    ``update_method`` is one of APPEND, REPLACE or UPSERT.
    """

    id: int | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None
    update_method: str | None = None
    key_column_name: str | None = None
    dataset: Dataset | None = Field(None, alias="dataSet")
    deleted: bool | None = None

    @classmethod
    def template(cls) -> "Stream":
        return cls(
            update_method="APPEND | REPLACE | UPSERT",
            key_column_name="Defines the key column used for UPSERT updates",
            dataset=Dataset.template(),
        )


class Execution(DomoModel):
    """One upload execution of a stream."""

    id: int | None = None
    started_at: datetime | None = None
    current_state: str | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(DomoModel):
    """A Domo user."""

    id: int | None = None
    name: str | None = None
    email: str | None = None
    alternate_email: str | None = None
    employee_id: str | None = None
    employee_number: int | None = None
    title: str | None = None
    phone: str | None = None
    location: str | None = None
    department: str | None = None
    timezone: str | None = None
    locale: str | None = None
    role: str | None = None
    role_id: int | None = None
    deleted: bool | None = None

    @classmethod
    def template(cls) -> "User":
        return cls(
            name="First Last",
            email="First.Last@company.com",
            title="Job Title",
            phone="555-555-5555",
            location="City, State, Country",
            role="Admin | Privileged | Participant",
        )


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class Property(DomoModel):
    """Property of an account type template."""

    name: str | None = None
    prompt: str | None = None
    regex: str | None = None
    prompt_type: str | None = None
    required: bool | None = None


class AccountTemplate(DomoModel):
    name: str | None = None
    title: str | None = None
    content_type: str | None = None
    method: str | None = None
    properties: list[Property] | None = None


class AccountType(DomoModel):
    """Type of an account and the templates describing its properties."""

    id: str | None = None
    name: str | None = None
    properties: dict[str, str] | None = None
    templates: dict[str, AccountTemplate] | None = Field(None, alias="_templates")


class Account(DomoModel):
    """Credentials to a third-party data provider stored in Domo."""

    id: str | None = None
    name: str | None = None
    valid: bool | None = None
    account_type: AccountType | None = Field(None, alias="type")

    @classmethod
    def template(cls, account_type: AccountType | None = None) -> "Account":
        return cls(name="Account Name", account_type=account_type)


# ---------------------------------------------------------------------------
# Workflow (projects and tasks)
# ---------------------------------------------------------------------------


class Project(DomoModel):
    """A workflow project."""

    id: str | None = None
    name: str | None = None
    description: str | None = None
    created_by: int | None = None
    created_date: datetime | None = None
    due_date: datetime | None = None
    public: bool | None = None
    members: list[int] | None = None

    @classmethod
    def template(cls) -> "Project":
        return cls(
            name="Project Name",
            description="Project Description",
            due_date=_now(),
            public=True,
            members=[],
        )


class ProjectList(DomoModel):
    """Swim lane of a project (TODO, WORKING_ON, COMPLETED or custom)."""

    id: int | None = None
    name: str | None = None
    list_type: str | None = Field(None, alias="type")
    index: int | None = None

    @classmethod
    def template(cls) -> "ProjectList":
        return cls(name="List Name", list_type="TODO | WORKING_ON | COMPLETED", index=0)


class Task(DomoModel):
    """A task within a project list."""

    id: int | None = None
    project_id: int | None = None
    project_list_id: int | None = None
    task_name: str | None = None
    description: str | None = None
    created_date: datetime | None = None
    due_date: datetime | None = None
    priority: int | None = None
    created_by: int | None = None
    owned_by: int | None = None
    contributors: list[int] | None = None
    attachment_count: int | None = None
    tags: list[str] | None = None
    archived: bool | None = None

    @classmethod
    def template(cls) -> "Task":
        return cls(
            task_name="Task Name",
            description="Task Description",
            due_date=_now(),
            priority=1,
            contributors=[],
            tags=[],
        )
