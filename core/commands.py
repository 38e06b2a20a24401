"""
Channel Commands.

Closed set of command variants accepted over the realtime channel. Each
variant declares its wire fields; parse_command() checks presence and type
of every field before anything is dispatched, so handlers only ever see
well-formed dataclasses.

Wire format (client -> server):
    event name: the command tag, e.g. "moveImage"
    data:       {"project": ..., "imageName": ..., "requestId": ...}

requestId is optional on every command and echoed on every reply.
upload / moveImage / deleteImage additionally accept batchId + batchSize.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar

from core.errors import ValidationError
from utils.path_manager import is_valid_component

# Field names used by older clients
_FIELD_ALIASES = {
    "projectName": "project",
    "fileData": "fileBytes",
    "originalFolderName": "desiredFolderName",
}

# Event names used by older clients
EVENT_ALIASES = {
    "yourBeginLearnMsg": "startTraining",
}


@dataclass(frozen=True)
class Field:
    wire: str
    attr: str
    kind: str  # name | str | bytes | files | int
    required: bool = True


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


def _as_bytes(value: Any, wire: str) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    # ArrayBuffer payloads serialized as a list of ints
    if isinstance(value, list):
        try:
            return bytes(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"{wire} is not a byte array", details=str(e)) from e
    raise ValidationError(f"{wire} must be binary", details=type(value).__name__)


def _as_name(value: Any, wire: str) -> str:
    if not is_valid_component(value):
        raise ValidationError(f"Invalid {wire}", details=repr(value))
    return value


def _as_str(value: Any, wire: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{wire} must be a non-empty string", details=repr(value))
    return value


def _as_int(value: Any, wire: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{wire} must be an integer", details=repr(value))
    return value


def _as_files(value: Any, wire: str) -> list[tuple[str, bytes]]:
    if not isinstance(value, list):
        raise ValidationError(f"{wire} must be a list", details=type(value).__name__)
    files = []
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            raise ValidationError(f"{wire}[{index}] must be an object")
        item = _apply_aliases(item)
        if "fileName" not in item or "fileBytes" not in item:
            raise ValidationError(f"{wire}[{index}] needs fileName and fileBytes")
        files.append(
            (
                _as_name(item["fileName"], f"{wire}[{index}].fileName"),
                _as_bytes(item["fileBytes"], f"{wire}[{index}].fileBytes"),
            )
        )
    return files


_COERCERS = {
    "name": _as_name,
    "str": _as_str,
    "bytes": _as_bytes,
    "files": _as_files,
    "int": _as_int,
}


def _apply_aliases(data: dict, extra: dict | None = None) -> dict:
    aliases = dict(_FIELD_ALIASES)
    if extra:
        aliases.update(extra)
    result = dict(data)
    for old, new in aliases.items():
        if old in result and new not in result:
            result[new] = result.pop(old)
    return result


# ---------------------------------------------------------------------------
# Command variants
# ---------------------------------------------------------------------------


@dataclass(kw_only=True)
class Command:
    event: ClassVar[str] = ""
    success_event: ClassVar[str] = ""
    error_event: ClassVar[str] = ""
    fields: ClassVar[tuple[Field, ...]] = ()
    aliases: ClassVar[dict] = {}
    batchable: ClassVar[bool] = False

    request_id: str | None = None
    batch_id: str | None = None
    batch_size: int | None = None


@dataclass(kw_only=True)
class CreateProject(Command):
    event = "createProject"
    success_event = "createProjectSuccess"
    error_event = "createProjectError"
    fields = (Field("project", "project", "name"),)

    project: str


@dataclass(kw_only=True)
class UploadImage(Command):
    event = "upload"
    success_event = "uploadSuccess"
    error_event = "uploadError"
    fields = (
        Field("project", "project", "name"),
        Field("label", "label", "name"),
        Field("fileName", "file_name", "str"),
        Field("fileBytes", "file_bytes", "bytes"),
    )
    aliases = {"labelName": "label"}
    batchable = True

    project: str
    label: str
    file_name: str
    file_bytes: bytes = field(repr=False)


@dataclass(kw_only=True)
class MoveImage(Command):
    event = "moveImage"
    success_event = "moveImageSuccess"
    error_event = "moveImageError"
    fields = (
        Field("project", "project", "name"),
        Field("imageName", "image_name", "name"),
        Field("sourceLabel", "source_label", "name"),
        Field("targetLabel", "target_label", "name"),
    )
    batchable = True

    project: str
    image_name: str
    source_label: str
    target_label: str


@dataclass(kw_only=True)
class DeleteImage(Command):
    event = "deleteImage"
    success_event = "deleteImageSuccess"
    error_event = "deleteImageError"
    fields = (
        Field("project", "project", "name"),
        Field("imageName", "image_name", "name"),
        Field("labelName", "label", "name"),
    )
    batchable = True

    project: str
    image_name: str
    label: str


@dataclass(kw_only=True)
class CreateLabel(Command):
    event = "createLabel"
    success_event = "createLabelSuccess"
    error_event = "createLabelError"
    fields = (
        Field("project", "project", "name"),
        Field("labelName", "label", "name"),
    )

    project: str
    label: str


@dataclass(kw_only=True)
class DeleteLabel(Command):
    event = "deleteLabel"
    success_event = "deleteLabelSuccess"
    error_event = "deleteLabelError"
    fields = (
        Field("project", "project", "name"),
        Field("labelName", "label", "name"),
    )

    project: str
    label: str


@dataclass(kw_only=True)
class UploadFolder(Command):
    event = "uploadFolder"
    success_event = "uploadFolderSuccess"
    error_event = "uploadFolderError"
    fields = (
        Field("project", "project", "name"),
        Field("desiredFolderName", "desired_folder_name", "name"),
        Field("files", "files", "files"),
    )

    project: str
    desired_folder_name: str
    files: list[tuple[str, bytes]] = field(default_factory=list, repr=False)


@dataclass(kw_only=True)
class StartTraining(Command):
    event = "startTraining"
    success_event = "learnCompleted"
    error_event = "learnError"
    fields = (Field("project", "project", "name"),)

    project: str


@dataclass(kw_only=True)
class StartVerification(Command):
    event = "startVerification"
    success_event = "verificationResult"
    error_event = "verificationError"
    fields = (
        Field("project", "project", "name"),
        Field("folderName", "folder_name", "name"),
    )

    project: str
    folder_name: str


@dataclass(kw_only=True)
class JobStatus(Command):
    event = "jobStatus"
    success_event = "jobStatusResult"
    error_event = "jobStatusError"
    fields = (Field("project", "project", "name"),)

    project: str


@dataclass(kw_only=True)
class BatchComplete(Command):
    """Explicit end-of-batch marker sent by clients that do not declare batchSize."""

    fields = (Field("project", "project", "name", required=False),)

    project: str | None = None


COMMANDS: dict[str, type[Command]] = {
    cls.event: cls
    for cls in (
        CreateProject,
        UploadImage,
        MoveImage,
        DeleteImage,
        CreateLabel,
        DeleteLabel,
        UploadFolder,
        StartTraining,
        StartVerification,
        JobStatus,
    )
}

BATCH_MARKERS = ("uploadComp", "moveImageComp", "deleteImageComp")


def canonical_event(event: str) -> str:
    return EVENT_ALIASES.get(event, event)


def error_event_for(event: str) -> str:
    cls = COMMANDS.get(canonical_event(event))
    return cls.error_event if cls else "commandError"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_request_id(data: dict) -> str | None:
    value = data.get("requestId")
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValidationError("requestId must be a string or integer", details=repr(value))
    return str(value)


def _parse_batch(cls: type[Command], data: dict) -> tuple[str | None, int | None]:
    batch_id = data.get("batchId")
    batch_size = data.get("batchSize")
    if batch_id is None and batch_size is None:
        return None, None
    if not cls.batchable:
        raise ValidationError(f"{cls.event} does not take part in batches")
    if batch_id is None or batch_size is None:
        raise ValidationError("batchId and batchSize must be given together")
    batch_id = _as_str(str(batch_id) if isinstance(batch_id, int) else batch_id, "batchId")
    batch_size = _as_int(batch_size, "batchSize")
    if batch_size < 1:
        raise ValidationError("batchSize must be at least 1", details=str(batch_size))
    return batch_id, batch_size


def parse_command(event: str, data: Any) -> Command:
    """
    Validates a raw channel payload and builds the matching command.

    Raises:
        ValidationError: unknown event, missing field or wrong field type.
    """
    event = canonical_event(event)
    if event in BATCH_MARKERS:
        cls = BatchComplete
    else:
        cls = COMMANDS.get(event)
    if cls is None:
        raise ValidationError("Unknown command", details=str(event))

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError(f"{event} payload must be an object", details=type(data).__name__)
    data = _apply_aliases(data, cls.aliases)

    kwargs = {}
    for wire_field in cls.fields:
        if wire_field.wire not in data or data[wire_field.wire] is None:
            if wire_field.required:
                raise ValidationError(f"Missing field {wire_field.wire}", details=event)
            continue
        kwargs[wire_field.attr] = _COERCERS[wire_field.kind](data[wire_field.wire], wire_field.wire)

    kwargs["request_id"] = _parse_request_id(data)
    kwargs["batch_id"], kwargs["batch_size"] = _parse_batch(cls, data)
    return cls(**kwargs)
