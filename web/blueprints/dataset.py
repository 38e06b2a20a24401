"""
Dataset Blueprint.

Read-only HTTP surface over the dataset store:
- GET /directory?path=...       - Root-relative directory listing
- GET /images?path=...          - Raw image bytes
- GET /api/projects             - Project names
- GET /api/projects/<project>   - Labels, images, verification folders, job status

All mutations go through the realtime channel, never through these routes.
"""

from flask import Blueprint, jsonify, request, send_file

from core.errors import DatasetError, NotFoundError, ValidationError
from logging_config import get_logger
from web.services import dataset_service

logger = get_logger(__name__)

dataset_bp = Blueprint("dataset", __name__)


def _error_response(error: DatasetError):
    if isinstance(error, NotFoundError):
        status = 404
    elif isinstance(error, ValidationError):
        status = 400
    else:
        status = 500
        logger.error(f"Dataset read failed: {error.message} ({error.details})")
    return (
        jsonify(
            {
                "status": "error",
                "error": error.kind,
                "message": error.message,
                "details": error.details,
            }
        ),
        status,
    )


@dataset_bp.route("/directory", methods=["GET"])
def directory_listing():
    """Lists a directory; path is relative to the dataset root."""
    try:
        entries = dataset_service.list_directory(request.args.get("path"))
    except DatasetError as e:
        return _error_response(e)
    return jsonify(entries)


@dataset_bp.route("/images", methods=["GET"])
def image_bytes():
    try:
        file_path, mimetype = dataset_service.resolve_image(request.args.get("path"))
    except DatasetError as e:
        return _error_response(e)
    return send_file(file_path, mimetype=mimetype)


@dataset_bp.route("/api/projects", methods=["GET"])
def projects_list():
    return jsonify({"status": "success", "projects": dataset_service.list_projects()})


@dataset_bp.route("/api/projects/<project>", methods=["GET"])
def project_detail(project):
    try:
        detail = dataset_service.describe_project(project)
    except DatasetError as e:
        return _error_response(e)
    return jsonify({"status": "success", **detail})
