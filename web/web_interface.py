# ------------------------------------------------------------------------------
# web_interface.py
# ------------------------------------------------------------------------------

from flask import Flask
from flask_socketio import SocketIO

from config import get_config
from core.dataset_store import DatasetStore
from core.job_orchestrator import JobOrchestrator
from core.mutation_handlers import MutationHandlers
from core.notification_bus import BatchTracker, NotificationBus
from core.project_locks import ProjectLocks
from learners import HistogramLearner, LearnerInterface
from logging_config import get_logger
from utils.path_manager import PathManager
from web.blueprints import dataset_bp
from web.channel_events import register_channel_events
from web.services.dataset_service import ORCHESTRATOR_EXTENSION, STORE_EXTENSION

logger = get_logger(__name__)


def create_web_interface(config_overrides=None, learner: LearnerInterface = None, spawn=None):
    """
    Creates and returns the web interface (Flask app + Socket.IO server).

    Args:
        config_overrides: Optional dict merged over get_config().
        learner: Training/verification backend, HistogramLearner by default.
        spawn: Runs background jobs as spawn(target, *args); defaults to
               socketio.start_background_task.

    Returns:
        dict with "server" (Flask app), "socketio", "store", "orchestrator"
        and "run" (callable starting the server).
    """
    config = dict(get_config())
    config.update(config_overrides or {})

    server = Flask(__name__)
    server.secret_key = config["SECRET_KEY"]

    socketio = SocketIO(
        server,
        async_mode=config["SOCKETIO_ASYNC_MODE"],
        cors_allowed_origins=config["CORS_ALLOWED_ORIGINS"],
        max_http_buffer_size=config["MAX_MESSAGE_BYTES"],
        # Events of one client run in arrival order on its receive thread
        async_handlers=False,
    )

    def broadcast(event, payload):
        if payload is None:
            socketio.emit(event)
        else:
            socketio.emit(event, payload)

    store = DatasetStore(PathManager(config["DATASET_ROOT"]))
    bus = NotificationBus(broadcast)
    batches = BatchTracker(bus.notify_dataset_changed)

    if learner is None:
        learner = HistogramLearner(
            bins=config["HISTOGRAM_BINS"],
            image_size=config["IMAGE_SIZE"],
            temperature=config["SOFTMAX_TEMPERATURE"],
        )
    orchestrator = JobOrchestrator(
        store, learner, bus, spawn=spawn or socketio.start_background_task
    )
    handlers = MutationHandlers(
        store,
        ProjectLocks(),
        bus,
        batches,
        orchestrator,
        max_upload_bytes=config["MAX_UPLOAD_BYTES"],
    )

    register_channel_events(socketio, handlers, batches)

    server.extensions[STORE_EXTENSION] = store
    server.extensions[ORCHESTRATOR_EXTENSION] = orchestrator
    server.register_blueprint(dataset_bp)

    logger.info(f"Dataset root: {config['DATASET_ROOT']}")

    def run(debug=False, host=None, port=None):
        socketio.run(
            server,
            host=host or config["HOST"],
            port=port or config["PORT"],
            debug=debug,
            allow_unsafe_werkzeug=True,
        )

    return {
        "server": server,
        "socketio": socketio,
        "store": store,
        "orchestrator": orchestrator,
        "run": run,
    }
