"""
Mutation Command Handlers.

One handler per command variant. A handler validates, performs its store
operation under the project's lock and returns the success payload; the
dispatcher turns raised DatasetErrors into the command's error reply.
Every reply carries the command's requestId.

Notification policy:
- upload / moveImage / deleteImage only notify through their batch
  (declared batchId + batchSize, or the explicit *Comp marker).
- createLabel / deleteLabel / uploadFolder notify on success.
- createProject notifies project listeners.
"""

import logging
from collections.abc import Callable

from core.commands import (
    BatchComplete,
    Command,
    CreateLabel,
    CreateProject,
    DeleteImage,
    DeleteLabel,
    JobStatus,
    MoveImage,
    StartTraining,
    StartVerification,
    UploadFolder,
    UploadImage,
)
from core.dataset_store import DatasetStore
from core.errors import DatasetError, NotFoundError, StorageError, ValidationError
from core.job_orchestrator import JobOrchestrator
from core.notification_bus import BatchTracker, NotificationBus
from core.project_locks import ProjectLocks

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 1024 * 1024

ReplyFunc = Callable[[str, dict], None]


class MutationHandlers:
    def __init__(
        self,
        store: DatasetStore,
        locks: ProjectLocks,
        bus: NotificationBus,
        batches: BatchTracker,
        orchestrator: JobOrchestrator,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ):
        self._store = store
        self._locks = locks
        self._bus = bus
        self._batches = batches
        self._orchestrator = orchestrator
        self.max_upload_bytes = max_upload_bytes

        self._handlers: dict[type[Command], Callable] = {
            CreateProject: self._create_project,
            UploadImage: self._upload,
            MoveImage: self._move_image,
            DeleteImage: self._delete_image,
            CreateLabel: self._create_label,
            DeleteLabel: self._delete_label,
            UploadFolder: self._upload_folder,
            StartTraining: self._start_training,
            StartVerification: self._start_verification,
            JobStatus: self._job_status,
        }

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def handle(self, command: Command, owner: str, reply: ReplyFunc) -> None:
        """
        Runs one command for the client identified by owner.

        reply(event, payload) sends to the issuing client only.
        """
        if isinstance(command, BatchComplete):
            self._bus.notify_dataset_changed(command.project)
            return

        handler = self._handlers[type(command)]
        try:
            payload = handler(command, reply)
        except DatasetError as e:
            self._reply_error(command, e, reply)
        except Exception as e:
            logger.error(f"Unexpected failure in {command.event}: {e}", exc_info=True)
            self._reply_error(
                command, StorageError("Unexpected server error", details=str(e)), reply
            )
        else:
            # None means the outcome is delivered later by the orchestrator
            if payload is not None:
                payload["requestId"] = command.request_id
                reply(command.success_event, payload)
                self._notify_after_success(command)
        finally:
            if command.batch_id is not None:
                self._batches.record(
                    owner, command.batch_id, command.batch_size, getattr(command, "project", None)
                )

    def _notify_after_success(self, command: Command) -> None:
        if isinstance(command, CreateProject):
            self._bus.notify_projects_changed()
        elif isinstance(command, (CreateLabel, DeleteLabel, UploadFolder)):
            self._bus.notify_dataset_changed(command.project)

    @staticmethod
    def _reply_error(command: Command, error: DatasetError, reply: ReplyFunc) -> None:
        logger.info(f"{command.event} failed: {error.kind}: {error.message} ({error.details})")
        payload = error.to_payload()
        payload["requestId"] = command.request_id
        reply(command.error_event, payload)

    def _check_size(self, file_name: str, data: bytes) -> None:
        if len(data) > self.max_upload_bytes:
            logger.warning(
                f"Rejected {file_name}: {len(data)} bytes exceeds {self.max_upload_bytes}"
            )
            raise ValidationError(
                "File too large",
                details=f"{file_name} is {len(data)} bytes, limit {self.max_upload_bytes}",
            )

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def _create_project(self, command: CreateProject, reply) -> dict:
        with self._locks.hold(command.project):
            self._store.create_project(command.project)
        return {"message": "Project created", "project": command.project}

    # ------------------------------------------------------------------
    # Training images
    # ------------------------------------------------------------------

    def _upload(self, command: UploadImage, reply) -> dict:
        self._check_size(command.file_name, command.file_bytes)
        with self._locks.hold(command.project):
            generated = self._store.write_image(
                command.project, command.label, command.file_name, command.file_bytes
            )
        logger.debug(f"Stored {command.file_name} as {command.label}/{generated}")
        return {"message": "File uploaded", "fileName": generated}

    def _move_image(self, command: MoveImage, reply) -> dict:
        if command.source_label == command.target_label:
            return {"message": "Image already in target label, nothing moved"}
        with self._locks.hold(command.project):
            self._store.move_image(
                command.project,
                command.source_label,
                command.target_label,
                command.image_name,
            )
        return {"message": "Image moved"}

    def _delete_image(self, command: DeleteImage, reply) -> dict:
        with self._locks.hold(command.project):
            self._store.delete_image(command.project, command.label, command.image_name)
        return {"message": "Image deleted"}

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def _create_label(self, command: CreateLabel, reply) -> dict:
        with self._locks.hold(command.project):
            self._store.create_label(command.project, command.label)
        return {"message": "Label created", "labelName": command.label}

    def _delete_label(self, command: DeleteLabel, reply) -> dict:
        with self._locks.hold(command.project):
            self._store.delete_label(command.project, command.label)
        return {"message": "Label deleted", "labelName": command.label}

    # ------------------------------------------------------------------
    # Verification folders
    # ------------------------------------------------------------------

    def _upload_folder(self, command: UploadFolder, reply) -> dict:
        accepted = []
        skipped = []
        for file_name, data in command.files:
            try:
                self._check_size(file_name, data)
            except ValidationError:
                skipped.append(file_name)
                continue
            accepted.append((file_name, data))

        with self._locks.hold(command.project):
            actual_name = self._store.create_verify_folder(
                command.project, command.desired_folder_name, accepted
            )
        return {
            "message": "Folder uploaded",
            "actualFolderName": actual_name,
            "fileCount": len(accepted),
            "skipped": skipped,
        }

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def _start_training(self, command: StartTraining, reply) -> None:
        self._orchestrator.start_training(command)
        return None

    def _start_verification(self, command: StartVerification, reply) -> None:
        self._orchestrator.start_verification(command, reply)
        return None

    def _job_status(self, command: JobStatus, reply) -> dict:
        if not self._store.project_exists(command.project):
            raise NotFoundError("Project not found", details=command.project)
        return self._orchestrator.training_status(command.project)
