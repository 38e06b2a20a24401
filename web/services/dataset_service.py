"""
Dataset Service - Web Layer Service for dataset reads.

Thin wrapper over the DatasetStore and JobOrchestrator that the app
factory registers in app.extensions.
"""

import mimetypes
from pathlib import Path

from flask import current_app

from core.dataset_store import DatasetStore
from core.job_orchestrator import JobOrchestrator

STORE_EXTENSION = "dataset_store"
ORCHESTRATOR_EXTENSION = "job_orchestrator"


def get_store() -> DatasetStore:
    return current_app.extensions[STORE_EXTENSION]


def get_orchestrator() -> JobOrchestrator:
    return current_app.extensions[ORCHESTRATOR_EXTENSION]


def list_directory(path: str | None) -> list[dict]:
    """Root-relative listing backing GET /directory."""
    return get_store().list_directory(path)


def resolve_image(path: str | None) -> tuple[Path, str]:
    """Returns the file path and its guessed MIME type."""
    file_path = get_store().resolve_readable_path(path)
    mimetype, _ = mimetypes.guess_type(file_path.name)
    return file_path, mimetype or "application/octet-stream"


def list_projects() -> list[str]:
    return get_store().list_projects()


def describe_project(project: str) -> dict:
    """Labels with counts, training images, verification folders and job status."""
    store = get_store()
    return {
        "project": project,
        "labels": store.list_labels(project),
        "images": store.list_images(project),
        "verifyFolders": store.list_verify_folders(project),
        "training": get_orchestrator().training_status(project),
    }
