# config.py
import os
from dotenv import load_dotenv

# Load environment variables from .env file.
load_dotenv()

_config = None


def _parse_origins(raw: str):
    """'*' stays a wildcard, anything else is a comma separated list."""
    raw = (raw or "").strip()
    if raw in ("", "*"):
        return "*"
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def load_config():
    """
    Loads configuration from environment variables and returns a dictionary.
    """
    config = {
        # General Settings
        "DEBUG_MODE": os.getenv("DEBUG_MODE", "False").lower() == "true",
        "DATASET_ROOT": os.getenv("DATASET_ROOT", os.path.join(os.getcwd(), "data")),
        "SECRET_KEY": os.getenv("SECRET_KEY", "dataset-sync-dev-key"),

        # Server Settings
        "HOST": os.getenv("HOST", "0.0.0.0"),
        "PORT": int(os.getenv("PORT", 3000)),
        "CORS_ALLOWED_ORIGINS": _parse_origins(os.getenv("CORS_ALLOWED_ORIGINS", "*")),
        "SOCKETIO_ASYNC_MODE": os.getenv("SOCKETIO_ASYNC_MODE", "threading"),

        # Upload Settings
        "MAX_UPLOAD_BYTES": int(os.getenv("MAX_UPLOAD_BYTES", 1024 * 1024)),
        # Socket.IO message limit; must exceed MAX_UPLOAD_BYTES so oversized files reach the per-file check
        "MAX_MESSAGE_BYTES": int(os.getenv("MAX_MESSAGE_BYTES", 100 * 1024 * 1024)),

        # Learner Settings
        "HISTOGRAM_BINS": int(os.getenv("HISTOGRAM_BINS", 16)),
        "IMAGE_SIZE": int(os.getenv("IMAGE_SIZE", 64)),
        "SOFTMAX_TEMPERATURE": float(os.getenv("SOFTMAX_TEMPERATURE", 10.0)),
    }
    return config


def get_config():
    """Returns the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


if __name__ == "__main__":
    # For testing purposes, print the configuration
    config = load_config()
    from pprint import pprint

    pprint(config)
