"""Edit-and-submit workflow for creating and updating API objects.

An object is rendered to a YAML document in a temporary file, the user's
editor is run on it, and the saved document is parsed, validated and
submitted. A malformed document sends the user back to the editor with the
error written at the top of the file; after too many attempts the workflow
gives up and leaves the file in place.
"""

import enum
import hashlib
import json
import os
import shlex
import subprocess
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, TypeVar

import pydantic
import structlog
import yaml

from .publicapi import types
from .publicapi.errors import DomoError, EditAborted, ValidationError
from .publicapi.resources import ResourceClient

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=types.DomoModel)

DEFAULT_MAX_RETRIES = 3

ERROR_PREFIX = "# ERROR: "

Editor = Callable[[Path], int]


class EditState(enum.Enum):
    IDLE = "idle"
    FETCHED = "fetched"
    EDITING = "editing"
    EDITED = "edited"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    DONE = "done"
    ABORTED = "aborted"


class DocumentError(ValueError):
    """Raised when an edited document cannot be turned back into an object."""


# ---------------------------------------------------------------------------
# Document codec
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EditableDocument:
    """Text form of an object, tagged with its identity and version."""

    resource_name: str
    resource_id: str | None
    version: str
    text: str


def version_of(obj: types.DomoModel) -> str:
    """Return a content hash identifying this exact state of ``obj``."""
    canonical = json.dumps(obj.to_api(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()


def render_document(
    obj: types.DomoModel,
    resource_name: str,
    resource_id: object = None,
) -> EditableDocument:
    """Render ``obj`` as a commented YAML document."""
    version = version_of(obj)
    identity = resource_name if resource_id is None else f"{resource_name} {resource_id}"
    header = [
        f"# {identity} (version {version[:12]})",
        "# Edit the fields below and save to submit. Lines starting with '#' are ignored.",
        "# Save an empty or unchanged file to cancel.",
    ]
    body = yaml.safe_dump(
        obj.to_api(),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    return EditableDocument(
        resource_name=resource_name,
        resource_id=None if resource_id is None else str(resource_id),
        version=version,
        text="\n".join(header) + "\n" + body,
    )


def parse_document(text: str, model: type[M]) -> M:
    """Parse an edited document back into ``model``.

    Raises:
        DocumentError: If the YAML is malformed, is not a mapping or does
            not validate against ``model``.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"invalid YAML: {exc}"
        raise DocumentError(msg) from exc

    if not isinstance(data, dict):
        msg = f"expected a mapping of fields, got {type(data).__name__}"
        raise DocumentError(msg)

    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        msg = f"invalid {model.__name__}: {exc}"
        raise DocumentError(msg) from exc


def is_blank(text: str) -> bool:
    """Return True if the document has no content besides comments."""
    return all(
        not line.strip() or line.lstrip().startswith("#") for line in text.splitlines()
    )


def annotate_errors(text: str, error: Exception) -> str:
    """Replace previous error annotations at the top of ``text`` with ``error``."""
    lines = text.splitlines()
    while lines and lines[0].startswith(ERROR_PREFIX):
        lines.pop(0)
    notes = [f"{ERROR_PREFIX}{line}" for line in str(error).splitlines() if line.strip()]
    return "\n".join([*notes, *lines]) + "\n"


# ---------------------------------------------------------------------------
# External editor
# ---------------------------------------------------------------------------


class ExternalEditor:
    """Runs an editor command on a file and waits for it to exit.

    The command may carry arguments (e.g. ``"code --wait"``). There is no
    timeout.
    """

    def __init__(self, command: str):
        self.command = command

    def __call__(self, path: Path) -> int:
        argv = [*shlex.split(self.command), str(path)]
        logger.debug("Launching editor", argv=argv)
        completed = subprocess.run(argv, check=False)  # noqa: S603
        return completed.returncode


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class EditWorkflow(Generic[M]):
    """One create or update of an object through the user's editor.

    Moves through the states of :class:`EditState`. Nothing is sent to the
    API unless the document parses and the user did not cancel. Submit
    failures are raised as-is and never retried. Whenever the workflow ends
    without success the document stays on disk at :attr:`document_path`.
    """

    def __init__(
        self,
        resource: ResourceClient[M],
        editor: Editor,
        max_retries: int = DEFAULT_MAX_RETRIES,
        tmp_dir: str | Path | None = None,
        check_staleness: bool = True,
    ):
        """Initialize the workflow.

        Args:
            resource: Collection the object belongs to.
            editor: Opens a file for editing, returns the exit status.
            max_retries: How many times a malformed document is handed back
                to the editor before giving up.
            tmp_dir: Directory for the document (system default if None).
            check_staleness: On update, re-fetch the object before submit
                and warn if it changed remotely while being edited.
        """
        if max_retries < 0:
            msg = "max_retries cannot be negative"
            raise ValueError(msg)
        self.resource = resource
        self._editor = editor
        self._max_retries = max_retries
        self._tmp_dir = tmp_dir
        self._check_staleness = check_staleness
        self.state = EditState.IDLE
        self.document_path: Path | None = None
        self.stale = False

    def create(self, template: M) -> M:
        """Edit ``template`` and submit the result as a new object."""
        self._transition(EditState.FETCHED)
        document = render_document(template, self.resource.name)
        edited = self._edit(document)
        return self._submit(lambda: self.resource.create(edited))

    def update(self, resource_id: object) -> M:
        """Fetch an object, edit it and submit the result as an update."""
        current = self.resource.get(resource_id)
        self._transition(EditState.FETCHED)
        document = render_document(current, self.resource.name, resource_id)
        edited = self._edit(document)
        if self._check_staleness:
            self._warn_if_stale(resource_id, document.version)
        return self._submit(lambda: self.resource.update(resource_id, edited))

    def _transition(self, state: EditState) -> None:
        logger.debug(
            "Edit workflow transition",
            resource=self.resource.name,
            from_state=self.state.value,
            to_state=state.value,
        )
        self.state = state

    def _abort(self, reason: str, error_class: type[EditAborted] = EditAborted) -> EditAborted:
        self._transition(EditState.ABORTED)
        logger.warning(
            "Edit aborted",
            resource=self.resource.name,
            reason=reason,
            document=str(self.document_path),
        )
        return error_class(reason, self.document_path)

    def _write_document(self, text: str) -> Path:
        fd, name = tempfile.mkstemp(
            prefix=f"domo-{self.resource.name.replace(' ', '-')}-",
            suffix=".yaml",
            dir=self._tmp_dir,
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        return Path(name)

    def _edit(self, document: EditableDocument) -> M:
        self.document_path = self._write_document(document.text)
        failures = 0
        while True:
            self._transition(EditState.EDITING)
            try:
                status = self._editor(self.document_path)
            except OSError as exc:
                raise self._abort(f"could not run editor: {exc}") from exc
            if status != 0:
                raise self._abort(f"editor exited with status {status}")

            self._transition(EditState.EDITED)
            try:
                text = self._read_document()
                if is_blank(text):
                    raise self._abort("document was emptied")
                if text == document.text:
                    raise self._abort("document was not changed")

                self._transition(EditState.VALIDATING)
                return parse_document(text, self.resource.model)
            except DocumentError as exc:
                failures += 1
                logger.warning(
                    "Edited document is malformed",
                    resource=self.resource.name,
                    attempt=failures,
                    error=str(exc),
                )
                if failures > self._max_retries:
                    msg = f"document still malformed after {failures} attempts: {exc}"
                    raise self._abort(msg, ValidationError) from exc
                # Undecodable bytes are replaced so the user still sees their edits.
                current = self.document_path.read_bytes().decode("utf-8", errors="replace")
                self.document_path.write_text(annotate_errors(current, exc), encoding="utf-8")

    def _read_document(self) -> str:
        try:
            return self.document_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            msg = f"document is not valid UTF-8: {exc}"
            raise DocumentError(msg) from exc
        except OSError as exc:
            raise self._abort(f"could not read document: {exc}") from exc

    def _warn_if_stale(self, resource_id: object, version: str) -> None:
        try:
            remote = self.resource.get(resource_id)
        except DomoError as exc:
            logger.warning(
                "Could not re-fetch object to check for concurrent changes",
                resource=self.resource.name,
                error=str(exc),
            )
            return
        if version_of(remote) != version:
            self.stale = True
            logger.warning(
                "Object changed remotely while it was being edited",
                resource=self.resource.name,
                resource_id=str(resource_id),
            )

    def _submit(self, submit: Callable[[], M]) -> M:
        self._transition(EditState.SUBMITTING)
        try:
            result = submit()
        except DomoError:
            self._transition(EditState.ABORTED)
            logger.error(
                "Submit failed, edited document kept",
                resource=self.resource.name,
                document=str(self.document_path),
            )
            raise

        self._transition(EditState.DONE)
        if self.document_path is not None:
            self.document_path.unlink(missing_ok=True)
        return result
