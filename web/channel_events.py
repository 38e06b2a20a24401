"""
Realtime channel wiring.

Registers one Socket.IO event per command. Each event is parsed into a
typed command at the boundary; malformed payloads are answered with the
command's error event and never reach a handler. Replies go to the issuing
client's sid only, broadcasts go through the NotificationBus.
"""

from flask import request
from flask_socketio import SocketIO

from core.commands import BATCH_MARKERS, COMMANDS, EVENT_ALIASES, error_event_for, parse_command
from core.errors import ValidationError
from core.mutation_handlers import MutationHandlers
from core.notification_bus import BatchTracker
from logging_config import get_logger

logger = get_logger(__name__)

CHANNEL_EVENTS = tuple(COMMANDS) + BATCH_MARKERS + tuple(EVENT_ALIASES)


def _raw_batch(data) -> tuple[str, int] | None:
    """batchId and batchSize of an unparsed payload, if both are usable."""
    if not isinstance(data, dict):
        return None
    batch_id = data.get("batchId")
    batch_size = data.get("batchSize")
    if isinstance(batch_id, bool) or not isinstance(batch_id, (str, int)) or batch_id == "":
        return None
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        return None
    return str(batch_id), batch_size


def _make_event_handler(
    socketio: SocketIO, handlers: MutationHandlers, batches: BatchTracker, event: str
):
    def on_event(data=None):
        sid = request.sid

        def reply(name: str, payload: dict) -> None:
            socketio.emit(name, payload, to=sid)

        try:
            command = parse_command(event, data)
        except ValidationError as e:
            logger.warning(f"Rejected {event} from {sid}: {e.message} ({e.details})")
            payload = e.to_payload()
            payload["requestId"] = data.get("requestId") if isinstance(data, dict) else None
            reply(error_event_for(event), payload)
            # A rejected item still counts toward its batch
            batch = _raw_batch(data)
            if batch is not None:
                project = data.get("project", data.get("projectName"))
                batches.record(sid, batch[0], batch[1], project if isinstance(project, str) else None)
            return

        handlers.handle(command, sid, reply)

    on_event.__name__ = f"on_{event}"
    return on_event


def register_channel_events(
    socketio: SocketIO, handlers: MutationHandlers, batches: BatchTracker
) -> None:
    for event in CHANNEL_EVENTS:
        socketio.on_event(event, _make_event_handler(socketio, handlers, batches, event))

    @socketio.on("connect")
    def on_connect(auth=None):
        logger.info(f"Client connected: {request.sid}")

    @socketio.on("disconnect")
    def on_disconnect(*args):
        logger.info(f"Client disconnected: {request.sid}")
        batches.flush_owner(request.sid)
