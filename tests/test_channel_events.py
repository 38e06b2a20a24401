"""
End-to-end tests of the realtime channel through the Flask-SocketIO test client.
"""

import time

import pytest

from learners.interfaces import (
    ImagePrediction,
    LearnerInterface,
    TrainingReport,
    VerificationResult,
)
from web.web_interface import create_web_interface

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class _FakeLearner(LearnerInterface):
    def train(self, training_dir, model_dir, progress):
        for step in (0, 50, 100):
            progress(step)
        labels = sorted(p.name for p in training_dir.iterdir() if p.is_dir())
        return TrainingReport(classes=labels, image_count=1, model_id="fake")

    def predict(self, verify_dir, model_dir):
        return VerificationResult(
            classes=["rose", "tulip"],
            images=[
                ImagePrediction(name=p.name, confidence=[0.9, 0.1])
                for p in sorted(verify_dir.iterdir())
            ],
        )


@pytest.fixture
def interface(tmp_path):
    return create_web_interface(
        config_overrides={
            "DATASET_ROOT": str(tmp_path / "data"),
            "SOCKETIO_ASYNC_MODE": "threading",
            "MAX_UPLOAD_BYTES": 64,
        },
        learner=_FakeLearner(),
        spawn=lambda target, *args: target(*args),
    )


@pytest.fixture
def clients(interface):
    socketio, app = interface["socketio"], interface["server"]
    first = socketio.test_client(app)
    second = socketio.test_client(app)
    first.get_received()
    second.get_received()
    yield first, second
    for client in (first, second):
        if client.is_connected():
            client.disconnect()


@pytest.fixture
def project(interface):
    interface["store"].create_project("flowers")
    return "flowers"


def _named(received, name):
    return [msg["args"][0] if msg["args"] else None for msg in received if msg["name"] == name]


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def test_upload_batch_replies_to_sender_and_broadcasts_once(clients, project, interface):
    sender, observer = clients
    for i, payload in enumerate([b"a" * 10, b"b" * 65, b"c" * 64]):
        sender.emit(
            "upload",
            {
                "project": project,
                "label": "rose",
                "fileName": f"{i}.jpg",
                "fileBytes": payload,
                "requestId": f"u{i}",
                "batchId": "batch-1",
                "batchSize": 3,
            },
        )

    sent = sender.get_received()
    seen = observer.get_received()

    assert [r["requestId"] for r in _named(sent, "uploadSuccess")] == ["u0", "u2"]
    assert [r["requestId"] for r in _named(sent, "uploadError")] == ["u1"]
    assert len(_named(sent, "dataset-changed")) == 1
    assert len(_named(seen, "dataset-changed")) == 1
    assert _named(seen, "uploadSuccess") == []
    assert len(interface["store"].list_images(project)) == 2


def test_legacy_comp_marker(clients, project):
    sender, observer = clients
    sender.emit(
        "upload",
        {"projectName": project, "labelName": "rose", "fileName": "a.jpg", "fileData": b"x"},
    )
    sender.emit("uploadComp")

    assert len(_named(sender.get_received(), "dataset-changed")) == 1
    assert len(_named(observer.get_received(), "dataset-changed")) == 1


def test_malformed_command_is_answered_with_validation_error(clients, project):
    sender, observer = clients
    sender.emit("moveImage", {"project": project, "imageName": "a.jpg", "requestId": "m1"})

    [error] = _named(sender.get_received(), "moveImageError")
    assert error["error"] == "ValidationError"
    assert error["requestId"] == "m1"
    assert observer.get_received() == []


def test_label_lifecycle(clients, project):
    sender, observer = clients
    sender.emit("createLabel", {"project": project, "labelName": "rose"})
    sender.emit("deleteLabel", {"project": project, "labelName": "rose"})
    sender.emit("deleteLabel", {"project": project, "labelName": "rose"})

    sent = sender.get_received()
    assert len(_named(sent, "createLabelSuccess")) == 1
    assert len(_named(sent, "deleteLabelSuccess")) == 1
    assert _named(sent, "deleteLabelError")[0]["error"] == "NotFoundError"
    assert len(_named(observer.get_received(), "dataset-changed")) == 2


def test_upload_folder_collision(clients, project):
    sender, _ = clients
    files = [{"fileName": "v1.jpg", "fileBytes": b"x"}]
    for _ in range(3):
        sender.emit("uploadFolder", {"project": project, "desiredFolderName": "batch1", "files": files})

    names = [r["actualFolderName"] for r in _named(sender.get_received(), "uploadFolderSuccess")]
    assert names == ["batch1", "batch1-1", "batch1-2"]


def test_training_progress_reaches_every_client(clients, project, interface):
    sender, observer = clients
    interface["store"].write_image(project, "rose", "a.jpg", b"x")

    sender.emit("startTraining", {"project": project, "requestId": "t1"})

    for client in (sender, observer):
        received = client.get_received()
        assert [p["progress"] for p in _named(received, "updateProgress")] == [0, 50, 100]
        completed = _named(received, "learnCompleted")
        assert len(completed) == 1
        assert completed[0]["requestId"] == "t1"
        assert _named(received, "learnError") == []


def test_legacy_training_event(clients, project, interface):
    sender, _ = clients
    interface["store"].write_image(project, "rose", "a.jpg", b"x")
    sender.emit("yourBeginLearnMsg", {"projectName": project})
    assert len(_named(sender.get_received(), "learnCompleted")) == 1


def test_verification_result_only_to_requester(clients, project, interface):
    sender, observer = clients
    interface["store"].create_verify_folder(project, "batch1", [("v1.jpg", b"x")])

    sender.emit("startVerification", {"project": project, "folderName": "batch1"})

    [result] = _named(sender.get_received(), "verificationResult")
    assert result["project"] == project
    assert result["result"]["classes"] == ["rose", "tulip"]
    assert result["result"]["images"] == [{"name": "v1.jpg", "confidence": [0.9, 0.1]}]
    assert _named(observer.get_received(), "verificationResult") == []


def test_create_project_notifies_project_listeners(clients):
    sender, observer = clients
    sender.emit("createProject", {"project": "birds"})

    assert len(_named(sender.get_received(), "createProjectSuccess")) == 1
    assert len(_named(observer.get_received(), "project-data-changed")) == 1


def test_disconnect_flushes_unfinished_batch(clients, project):
    sender, observer = clients
    sender.emit(
        "upload",
        {
            "project": project,
            "label": "rose",
            "fileName": "a.jpg",
            "fileBytes": b"x",
            "batchId": "b",
            "batchSize": 5,
        },
    )
    assert _named(observer.get_received(), "dataset-changed") == []

    sender.disconnect()

    assert len(_named(observer.get_received(), "dataset-changed")) == 1


def test_rejected_batch_item_still_completes_its_batch(clients, project, interface):
    sender, observer = clients
    for i, label in enumerate(["rose", "bad/label", "rose"]):
        sender.emit(
            "upload",
            {
                "project": project,
                "label": label,
                "fileName": f"{i}.jpg",
                "fileBytes": b"x",
                "requestId": f"u{i}",
                "batchId": "batch-2",
                "batchSize": 3,
            },
        )

    sent = sender.get_received()
    assert [r["requestId"] for r in _named(sent, "uploadSuccess")] == ["u0", "u2"]
    [error] = _named(sent, "uploadError")
    assert error["error"] == "ValidationError"
    assert error["requestId"] == "u1"
    assert len(_named(observer.get_received(), "dataset-changed")) == 1
    assert interface["store"].list_labels(project) == [{"name": "rose", "count": 2}]


def test_commands_of_one_client_run_in_order(interface, project, monkeypatch):
    socketio, app = interface["socketio"], interface["server"]
    # the test client switches async handlers off; restore the served setting
    served_setting = socketio.server.async_handlers
    assert served_setting is False

    store = interface["store"]
    real_create_label = store.create_label

    def _slow_create_label(*args):
        time.sleep(0.1)
        return real_create_label(*args)

    monkeypatch.setattr(store, "create_label", _slow_create_label)

    client = socketio.test_client(app)
    socketio.server.async_handlers = served_setting
    client.get_received()
    try:
        client.emit("createLabel", {"project": project, "labelName": "rose"})
        client.emit("deleteLabel", {"project": project, "labelName": "rose"})
        replies = [
            msg["name"] for msg in client.get_received() if msg["name"].endswith(("Success", "Error"))
        ]
    finally:
        client.disconnect()

    assert replies == ["createLabelSuccess", "deleteLabelSuccess"]
    assert store.list_labels(project) == []
