"""Tests for the read-only dataset HTTP routes."""

import pytest

from web.web_interface import create_web_interface


@pytest.fixture
def interface(tmp_path):
    interface = create_web_interface(
        config_overrides={
            "DATASET_ROOT": str(tmp_path / "data"),
            "SOCKETIO_ASYNC_MODE": "threading",
        },
    )
    store = interface["store"]
    store.create_project("flowers")
    interface["image_name"] = store.write_image("flowers", "rose", "a.png", b"\x89PNG-bytes")
    return interface


@pytest.fixture
def client(interface):
    interface["server"].config["TESTING"] = True
    with interface["server"].test_client() as client:
        yield client


def test_directory_listing(client):
    response = client.get("/directory?path=projects/flowers/training-data")
    assert response.status_code == 200
    assert response.get_json() == [
        {"name": "rose", "isDirectory": True, "path": "projects/flowers/training-data/rose"}
    ]


def test_directory_listing_rejects_escape(client):
    response = client.get("/directory?path=../../")
    assert response.status_code == 400
    assert response.get_json()["error"] == "ValidationError"


def test_directory_listing_missing(client):
    response = client.get("/directory?path=projects/ghost")
    assert response.status_code == 404
    data = response.get_json()
    assert data["status"] == "error"
    assert data["error"] == "NotFoundError"


def test_image_bytes(client, interface):
    name = interface["image_name"]
    response = client.get(f"/images?path=projects/flowers/training-data/rose/{name}")
    assert response.status_code == 200
    assert response.data == b"\x89PNG-bytes"
    assert response.mimetype == "image/png"
    response.close()


def test_image_without_path_is_404(client):
    assert client.get("/images").status_code == 404


def test_projects_list(client):
    response = client.get("/api/projects")
    assert response.get_json() == {"status": "success", "projects": ["flowers"]}


def test_project_detail(client, interface):
    response = client.get("/api/projects/flowers")
    assert response.status_code == 200
    data = response.get_json()
    assert data["labels"] == [{"name": "rose", "count": 1}]
    assert data["images"] == [{"name": interface["image_name"], "label": "rose"}]
    assert data["verifyFolders"] == []
    assert data["training"]["state"] == "idle"


def test_project_detail_unknown(client):
    assert client.get("/api/projects/ghost").status_code == 404
