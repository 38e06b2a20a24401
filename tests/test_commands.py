"""
Tests for channel command parsing and schema validation.
"""

import pytest

from core.commands import (
    BatchComplete,
    DeleteImage,
    MoveImage,
    StartTraining,
    UploadFolder,
    UploadImage,
    error_event_for,
    parse_command,
)
from core.errors import ValidationError


def test_parse_move_image():
    command = parse_command(
        "moveImage",
        {
            "project": "flowers",
            "imageName": "abc.jpg",
            "sourceLabel": "rose",
            "targetLabel": "tulip",
            "requestId": "r-1",
        },
    )
    assert isinstance(command, MoveImage)
    assert command.image_name == "abc.jpg"
    assert command.target_label == "tulip"
    assert command.request_id == "r-1"
    assert command.batch_id is None


def test_parse_upload_with_batch():
    command = parse_command(
        "upload",
        {
            "project": "flowers",
            "label": "rose",
            "fileName": "a.jpg",
            "fileBytes": b"\xff\xd8",
            "batchId": "b-7",
            "batchSize": 3,
        },
    )
    assert isinstance(command, UploadImage)
    assert command.file_bytes == b"\xff\xd8"
    assert (command.batch_id, command.batch_size) == ("b-7", 3)


def test_upload_accepts_list_of_ints_and_legacy_field_names():
    command = parse_command(
        "upload",
        {
            "projectName": "flowers",
            "labelName": "rose",
            "fileName": "a.jpg",
            "fileData": [1, 2, 255],
        },
    )
    assert command.project == "flowers"
    assert command.label == "rose"
    assert command.file_bytes == bytes([1, 2, 255])


def test_legacy_training_event_alias():
    command = parse_command("yourBeginLearnMsg", {"projectName": "flowers"})
    assert isinstance(command, StartTraining)
    assert error_event_for("yourBeginLearnMsg") == "learnError"


def test_upload_folder_files():
    command = parse_command(
        "uploadFolder",
        {
            "project": "flowers",
            "originalFolderName": "batch1",
            "files": [{"fileName": "a.jpg", "fileBytes": b"x"}, {"fileName": "b.jpg", "fileData": [1]}],
        },
    )
    assert isinstance(command, UploadFolder)
    assert command.desired_folder_name == "batch1"
    assert command.files == [("a.jpg", b"x"), ("b.jpg", b"\x01")]


@pytest.mark.parametrize("marker", ["uploadComp", "moveImageComp", "deleteImageComp"])
def test_batch_markers_need_no_payload(marker):
    command = parse_command(marker, None)
    assert isinstance(command, BatchComplete)
    assert command.project is None


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------


def test_unknown_event():
    with pytest.raises(ValidationError):
        parse_command("renameProject", {})
    assert error_event_for("renameProject") == "commandError"


def test_missing_field():
    with pytest.raises(ValidationError) as excinfo:
        parse_command("deleteImage", {"project": "flowers", "imageName": "a.jpg"})
    assert "labelName" in excinfo.value.message


def test_payload_must_be_object():
    with pytest.raises(ValidationError):
        parse_command("createLabel", "flowers")


@pytest.mark.parametrize("label", ["../x", "", 5, None])
def test_bad_names(label):
    with pytest.raises(ValidationError):
        parse_command("createLabel", {"project": "flowers", "labelName": label})


def test_bytes_must_be_binary():
    with pytest.raises(ValidationError):
        parse_command(
            "upload",
            {"project": "p", "label": "l", "fileName": "a.jpg", "fileBytes": "not bytes"},
        )


def test_list_with_out_of_range_values_is_not_bytes():
    with pytest.raises(ValidationError):
        parse_command(
            "upload",
            {"project": "p", "label": "l", "fileName": "a.jpg", "fileBytes": [256]},
        )


def test_batch_fields_come_together():
    with pytest.raises(ValidationError):
        parse_command(
            "deleteImage",
            {"project": "p", "imageName": "a.jpg", "labelName": "l", "batchId": "b"},
        )


def test_batch_size_must_be_positive():
    with pytest.raises(ValidationError):
        parse_command(
            "deleteImage",
            {"project": "p", "imageName": "a.jpg", "labelName": "l", "batchId": "b", "batchSize": 0},
        )


def test_batch_not_allowed_on_single_commands():
    with pytest.raises(ValidationError):
        parse_command(
            "createLabel",
            {"project": "p", "labelName": "l", "batchId": "b", "batchSize": 2},
        )


def test_delete_image_fields_map_to_attributes():
    command = parse_command(
        "deleteImage", {"project": "p", "imageName": "a.jpg", "labelName": "rose", "requestId": 12}
    )
    assert isinstance(command, DeleteImage)
    assert command.label == "rose"
    assert command.request_id == "12"
