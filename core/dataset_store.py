"""
Dataset Store - Filesystem-backed dataset hierarchy.

Owns every on-disk mutation of projects, labels, training images and
verification folders. All paths are resolved through PathManager; every
name coming from a client is validated as a single path component before
it touches the filesystem.

Atomicity:
- writeImage goes through a hidden temp file and os.replace, so a partially
  written image is never listed.
- moveImage is one os.rename inside the project's training-data tree.
- createVerifyFolder claims its folder name with mkdir(exist_ok=False)
  and removes the folder again if one of its files cannot be written.

The store does not lock. Callers serialize mutations per project
(see core.project_locks).
"""

import logging
import os
import re
import shutil
import tempfile
import uuid
from collections.abc import Iterable
from pathlib import Path

from core.errors import AlreadyExistsError, NotFoundError, StorageError, ValidationError
from utils.path_manager import PathManager, is_valid_component

logger = logging.getLogger(__name__)

_EXTENSION_RE = re.compile(r"\.[A-Za-z0-9]{1,10}")
_TEMP_PREFIX = ".upload-"


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


class DatasetStore:
    def __init__(self, path_manager: PathManager):
        self.paths = path_manager

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _require_name(value, what: str) -> str:
        if not is_valid_component(value):
            raise ValidationError(f"Invalid {what}", details=f"{what}={value!r}")
        return value

    @staticmethod
    def generate_image_name(original_name: str) -> str:
        """uuid4 hex plus the lower-cased extension of the client's name."""
        suffix = Path(original_name or "").suffix
        if not _EXTENSION_RE.fullmatch(suffix):
            suffix = ""
        return f"{uuid.uuid4().hex}{suffix.lower()}"

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def project_exists(self, project: str) -> bool:
        self._require_name(project, "project")
        return self.paths.get_project_dir(project).is_dir()

    def create_project(self, project: str) -> None:
        """Creates <project>/training-data and <project>/verify-data."""
        self._require_name(project, "project")
        project_dir = self.paths.get_project_dir(project)
        try:
            project_dir.mkdir(parents=True, exist_ok=False)
        except FileExistsError as e:
            raise AlreadyExistsError("Project already exists", details=str(e)) from e
        except OSError as e:
            raise StorageError("Could not create project", details=str(e)) from e
        try:
            self.paths.get_training_dir(project).mkdir()
            self.paths.get_verify_dir(project).mkdir()
        except OSError as e:
            raise StorageError("Could not create project", details=str(e)) from e
        logger.info(f"Created project {project}")

    def list_projects(self) -> list[str]:
        projects_dir = self.paths.projects_dir
        if not projects_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in projects_dir.iterdir()
            if entry.is_dir() and not _is_hidden(entry.name)
        )

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def ensure_label_dir(self, project: str, label: str) -> Path:
        """Idempotent creation of a label directory (and its parents)."""
        self._require_name(project, "project")
        self._require_name(label, "label")
        label_dir = self.paths.get_label_dir(project, label)
        try:
            label_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError("Could not create label directory", details=str(e)) from e
        return label_dir

    def create_label(self, project: str, label: str) -> None:
        self._require_name(project, "project")
        self._require_name(label, "label")
        label_dir = self.paths.get_label_dir(project, label)
        if label_dir.exists():
            raise AlreadyExistsError("Label already exists", details=label)
        try:
            label_dir.mkdir(parents=True, exist_ok=False)
        except FileExistsError as e:
            raise AlreadyExistsError("Label already exists", details=str(e)) from e
        except OSError as e:
            raise StorageError("Could not create label", details=str(e)) from e

    def delete_label(self, project: str, label: str) -> None:
        """Removes the label directory and every image in it."""
        self._require_name(project, "project")
        self._require_name(label, "label")
        label_dir = self.paths.get_label_dir(project, label)
        if not label_dir.is_dir():
            raise NotFoundError("Label not found", details=label)
        try:
            shutil.rmtree(label_dir)
        except FileNotFoundError as e:
            raise NotFoundError("Label not found", details=str(e)) from e
        except OSError as e:
            raise StorageError("Could not delete label", details=str(e)) from e

    def list_labels(self, project: str) -> list[dict]:
        """Labels of a project with their image counts."""
        if not self.project_exists(project):
            raise NotFoundError("Project not found", details=project)
        training_dir = self.paths.get_training_dir(project)
        if not training_dir.is_dir():
            return []
        labels = []
        for entry in sorted(training_dir.iterdir(), key=lambda p: p.name):
            if not entry.is_dir() or _is_hidden(entry.name):
                continue
            count = sum(
                1 for f in entry.iterdir() if f.is_file() and not _is_hidden(f.name)
            )
            labels.append({"name": entry.name, "count": count})
        return labels

    # ------------------------------------------------------------------
    # Training images
    # ------------------------------------------------------------------

    def write_image(
        self, project: str, label: str, original_name: str, data: bytes
    ) -> str:
        """
        Stores an uploaded training image under a fresh unique name.

        Args:
            project: Project name
            label: Label the image belongs to (created on demand)
            original_name: Client filename, only its extension is kept
            data: Image payload

        Returns:
            The generated filename.
        """
        label_dir = self.ensure_label_dir(project, label)
        generated = self.generate_image_name(original_name)
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=_TEMP_PREFIX, dir=label_dir)
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_path, label_dir / generated)
            tmp_path = None
        except OSError as e:
            raise StorageError("Could not write image", details=str(e)) from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
        return generated

    def image_exists(self, project: str, label: str, name: str) -> bool:
        self._require_name(project, "project")
        self._require_name(label, "label")
        self._require_name(name, "image name")
        return self.paths.get_image_path(project, label, name).is_file()

    def move_image(
        self, project: str, source_label: str, target_label: str, name: str
    ) -> None:
        """
        Relocates an image to another label with a single rename.
        The image is never absent from both labels and never present in both.
        """
        self._require_name(name, "image name")
        self._require_name(source_label, "label")
        source = self.paths.get_image_path(project, source_label, name)
        if not self.image_exists(project, source_label, name):
            raise NotFoundError("Image not found", details=f"{source_label}/{name}")

        target_dir = self.ensure_label_dir(project, target_label)
        target = target_dir / name
        if target.exists():
            raise AlreadyExistsError(
                "Target label already has an image with this name",
                details=f"{target_label}/{name}",
            )
        try:
            os.rename(source, target)
        except FileNotFoundError as e:
            raise NotFoundError("Image not found", details=str(e)) from e
        except OSError as e:
            raise StorageError("Could not move image", details=str(e)) from e

    def delete_image(self, project: str, label: str, name: str) -> None:
        if not self.image_exists(project, label, name):
            raise NotFoundError("Image not found", details=f"{label}/{name}")
        try:
            self.paths.get_image_path(project, label, name).unlink()
        except FileNotFoundError as e:
            raise NotFoundError("Image not found", details=str(e)) from e
        except OSError as e:
            raise StorageError("Could not delete image", details=str(e)) from e

    def list_images(self, project: str) -> list[dict]:
        """Every training image of a project as {name, label}."""
        images = []
        for label in self.list_labels(project):
            label_dir = self.paths.get_label_dir(project, label["name"])
            for entry in sorted(label_dir.iterdir(), key=lambda p: p.name):
                if entry.is_file() and not _is_hidden(entry.name):
                    images.append({"name": entry.name, "label": label["name"]})
        return images

    # ------------------------------------------------------------------
    # Verification folders
    # ------------------------------------------------------------------

    def create_verify_folder(
        self, project: str, desired_name: str, files: Iterable[tuple[str, bytes]]
    ) -> str:
        """
        Creates a verification folder and writes files under their original names.

        A taken name is resolved deterministically: desired, desired-1,
        desired-2, ... The first free name is claimed with an exclusive mkdir.

        Returns:
            The folder name actually created.
        """
        self._require_name(project, "project")
        self._require_name(desired_name, "folder name")
        files = list(files)
        for file_name, _ in files:
            self._require_name(file_name, "file name")

        verify_dir = self.paths.get_verify_dir(project)
        try:
            verify_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError("Could not create verify-data", details=str(e)) from e

        actual_name = desired_name
        counter = 1
        while True:
            if len(actual_name) > 255:
                raise ValidationError("Folder name too long", details=actual_name)
            try:
                (verify_dir / actual_name).mkdir(exist_ok=False)
                break
            except FileExistsError:
                actual_name = f"{desired_name}-{counter}"
                counter += 1
            except OSError as e:
                raise StorageError("Could not create folder", details=str(e)) from e

        folder_dir = verify_dir / actual_name
        for file_name, data in files:
            try:
                (folder_dir / file_name).write_bytes(data)
            except OSError as e:
                # A failed upload leaves no folder behind
                try:
                    shutil.rmtree(folder_dir)
                except OSError as cleanup_error:
                    logger.error(f"Could not remove {folder_dir}: {cleanup_error}")
                raise StorageError(
                    f"Could not write {file_name} to {actual_name}", details=str(e)
                ) from e
        return actual_name

    def list_verify_folders(self, project: str) -> list[dict]:
        if not self.project_exists(project):
            raise NotFoundError("Project not found", details=project)
        verify_dir = self.paths.get_verify_dir(project)
        if not verify_dir.is_dir():
            return []
        return [
            {
                "name": entry.name,
                "count": sum(1 for f in entry.iterdir() if f.is_file()),
            }
            for entry in sorted(verify_dir.iterdir(), key=lambda p: p.name)
            if entry.is_dir() and not _is_hidden(entry.name)
        ]

    # ------------------------------------------------------------------
    # Directories handed to the learner
    # ------------------------------------------------------------------

    def training_dir(self, project: str) -> Path:
        if not self.project_exists(project):
            raise NotFoundError("Project not found", details=project)
        return self.paths.get_training_dir(project)

    def verify_folder_dir(self, project: str, folder: str) -> Path:
        self._require_name(project, "project")
        self._require_name(folder, "folder name")
        folder_dir = self.paths.get_verify_folder_dir(project, folder)
        if not folder_dir.is_dir():
            raise NotFoundError("Verification folder not found", details=folder)
        return folder_dir

    def model_dir(self, project: str) -> Path:
        self._require_name(project, "project")
        try:
            return self.paths.get_model_dir(project)
        except OSError as e:
            raise StorageError("Could not create model directory", details=str(e)) from e

    # ------------------------------------------------------------------
    # Generic listing (also backs GET /directory and GET /images)
    # ------------------------------------------------------------------

    def _resolve(self, relative_path: str | None) -> Path:
        resolved = self.paths.resolve_relative(relative_path)
        if resolved is None:
            raise ValidationError("Path outside dataset root", details=str(relative_path))
        if not resolved.exists():
            raise NotFoundError("Path not found", details=str(relative_path))
        return resolved

    def list_directory(self, relative_path: str | None = None) -> list[dict]:
        """
        Lists a directory relative to the dataset root.

        Returns:
            [{name, isDirectory, path}] sorted by name, path root-relative.
        """
        directory = self._resolve(relative_path)
        if not directory.is_dir():
            raise ValidationError("Not a directory", details=str(relative_path))
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise StorageError("Could not list directory", details=str(e)) from e
        return [
            {
                "name": entry.name,
                "isDirectory": entry.is_dir(),
                "path": self.paths.relative_to_root(entry),
            }
            for entry in entries
            if not _is_hidden(entry.name)
        ]

    def resolve_readable_path(self, relative_path: str | None) -> Path:
        if not relative_path:
            raise NotFoundError("No path given")
        path = self._resolve(relative_path)
        if not path.is_file():
            raise NotFoundError("Not a file", details=relative_path)
        return path
