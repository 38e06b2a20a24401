"""
Job Orchestrator.

Tracks training runs (one per project) and verification runs (one per
project/folder) in memory, runs them as background tasks and relays their
progress and outcome.

Lifecycle per job key:
    Idle -> Running -> (Completed | Failed) -> Idle

Starting a job whose key is already Running is rejected with JobError.
A job emits exactly one terminal event, and the key is back to Idle
before that event goes out.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from core.commands import StartTraining, StartVerification
from core.dataset_store import DatasetStore
from core.errors import DatasetError, JobError
from core.notification_bus import NotificationBus
from learners.interfaces import LearnerError, LearnerInterface, VerificationResult

logger = logging.getLogger(__name__)

PROGRESS_EVENT = "updateProgress"

ReplyFunc = Callable[[str, dict], None]
SpawnFunc = Callable[..., Any]


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class JobRecord:
    key: str
    state: JobState = JobState.RUNNING
    progress: int = 0
    request_id: str | None = None
    started_at: float = field(default_factory=time.time)


def _spawn_thread(target, *args):
    worker = threading.Thread(target=target, args=args, name="DatasetJobWorker", daemon=True)
    worker.start()
    return worker


def _check_result_shape(result: VerificationResult) -> None:
    expected = len(result.classes)
    for image in result.images:
        if len(image.confidence) != expected:
            raise JobError(
                "Verification result is inconsistent",
                details=(
                    f"{image.name} has {len(image.confidence)} confidences "
                    f"for {expected} classes"
                ),
            )


class JobOrchestrator:
    def __init__(
        self,
        store: DatasetStore,
        learner: LearnerInterface,
        bus: NotificationBus,
        spawn: SpawnFunc | None = None,
    ):
        self._store = store
        self._learner = learner
        self._bus = bus
        self._spawn = spawn or _spawn_thread

        self._lock = threading.Lock()
        self._training: dict[str, JobRecord] = {}
        self._verification: dict[tuple[str, str], JobRecord] = {}
        self._last_training_outcome: dict[str, JobState] = {}

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def training_state(self, project: str) -> JobState:
        with self._lock:
            record = self._training.get(project)
            return record.state if record else JobState.IDLE

    def verification_state(self, project: str, folder: str) -> JobState:
        with self._lock:
            record = self._verification.get((project, folder))
            return record.state if record else JobState.IDLE

    def training_status(self, project: str) -> dict:
        with self._lock:
            record = self._training.get(project)
            last = self._last_training_outcome.get(project)
            return {
                "project": project,
                "state": (record.state if record else JobState.IDLE).value,
                "progress": record.progress if record else 0,
                "lastOutcome": last.value if last else None,
            }

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def start_training(self, command: StartTraining) -> None:
        """
        Starts a training run for command.project.

        Raises:
            NotFoundError: the project does not exist.
            JobError: a training run for this project is already running.
        """
        project = command.project
        training_dir = self._store.training_dir(project)
        model_dir = self._store.model_dir(project)

        with self._lock:
            if project in self._training:
                raise JobError("Training is already running", details=project)
            record = JobRecord(key=project, request_id=command.request_id)
            self._training[project] = record

        logger.info(f"Training started for {project}")
        try:
            self._spawn(self._run_training, record, training_dir, model_dir)
        except Exception as e:
            with self._lock:
                self._training.pop(project, None)
            raise JobError("Could not start training", details=str(e)) from e

    def _report_progress(self, record: JobRecord, percent: int) -> None:
        percent = int(percent)
        with self._lock:
            record.progress = percent
        self._bus.publish(
            PROGRESS_EVENT,
            {"project": record.key, "progress": percent, "requestId": record.request_id},
        )

    def _run_training(self, record: JobRecord, training_dir, model_dir) -> None:
        project = record.key
        try:
            report = self._learner.train(
                training_dir, model_dir, lambda p: self._report_progress(record, p)
            )
        except Exception as e:
            error = e if isinstance(e, JobError) else JobError("Training failed", details=str(e))
            if isinstance(e, (LearnerError, DatasetError)):
                logger.error(f"Training failed for {project}: {e}")
            else:
                logger.error(f"Training crashed for {project}: {e}", exc_info=True)
            self._finish_training(record, JobState.FAILED)
            self._bus.publish("learnError", self._tag(record, error.to_payload()))
        else:
            logger.info(f"Training completed for {project}")
            self._finish_training(record, JobState.COMPLETED)
            self._bus.publish(
                "learnCompleted",
                self._tag(
                    record,
                    {
                        "message": "Training completed and the model was saved.",
                        "project": project,
                        "classes": report.classes,
                        "imageCount": report.image_count,
                        "modelId": report.model_id,
                    },
                ),
            )

    def _finish_training(self, record: JobRecord, outcome: JobState) -> None:
        with self._lock:
            record.state = outcome
            self._training.pop(record.key, None)
            self._last_training_outcome[record.key] = outcome

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def start_verification(self, command: StartVerification, reply: ReplyFunc) -> None:
        """
        Starts verification of one folder. The outcome goes to reply only.

        Raises:
            NotFoundError: the folder does not exist.
            JobError: this folder is already being verified.
        """
        key = (command.project, command.folder_name)
        verify_dir = self._store.verify_folder_dir(command.project, command.folder_name)
        model_dir = self._store.model_dir(command.project)

        with self._lock:
            if key in self._verification:
                raise JobError("Verification is already running", details=command.folder_name)
            record = JobRecord(
                key=f"{command.project}/{command.folder_name}",
                request_id=command.request_id,
            )
            self._verification[key] = record

        logger.info(f"Verification started for {record.key}")
        try:
            self._spawn(self._run_verification, command, record, verify_dir, model_dir, reply)
        except Exception as e:
            with self._lock:
                self._verification.pop(key, None)
            raise JobError("Could not start verification", details=str(e)) from e

    def _run_verification(
        self, command: StartVerification, record: JobRecord, verify_dir, model_dir, reply
    ) -> None:
        key = (command.project, command.folder_name)
        try:
            result = self._learner.predict(verify_dir, model_dir)
            _check_result_shape(result)
        except Exception as e:
            if isinstance(e, JobError):
                error = e
            else:
                error = JobError("Verification failed", details=str(e))
            if isinstance(e, (LearnerError, DatasetError)):
                logger.error(f"Verification failed for {record.key}: {e}")
            else:
                logger.error(f"Verification crashed for {record.key}: {e}", exc_info=True)
            self._finish_verification(key, record, JobState.FAILED)
            reply(command.error_event, self._tag(record, error.to_payload()))
        else:
            logger.info(f"Verification completed for {record.key}: {len(result.images)} images")
            self._finish_verification(key, record, JobState.COMPLETED)
            reply(
                command.success_event,
                self._tag(
                    record,
                    {
                        "project": command.project,
                        "folderName": command.folder_name,
                        "result": result.to_dict(),
                    },
                ),
            )

    def _finish_verification(self, key, record: JobRecord, outcome: JobState) -> None:
        with self._lock:
            record.state = outcome
            self._verification.pop(key, None)

    # ------------------------------------------------------------------

    @staticmethod
    def _tag(record: JobRecord, payload: dict) -> dict:
        payload["requestId"] = record.request_id
        return payload
