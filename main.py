# ------------------------------------------------------------------------------
# Main Script for the Dataset Sync Server
# main.py
# ------------------------------------------------------------------------------
import json
import os

from config import get_config
config = get_config()
from logging_config import get_logger
logger = get_logger(__name__)

# --------------------------------------------------------------------------
# Configuration Parameters
# --------------------------------------------------------------------------
_debug = config["DEBUG_MODE"]
dataset_root = config["DATASET_ROOT"]

logger.info(f"Debug mode is {'enabled' if _debug else 'disabled'}.")
logger.info(f"Configuration: {json.dumps({k: v for k, v in config.items() if k != 'SECRET_KEY'}, indent=2)}")

os.makedirs(os.path.join(dataset_root, "projects"), exist_ok=True)

# -----------------------------
# Import and Run the Web Interface
# -----------------------------
from web.web_interface import create_web_interface

interface = create_web_interface()
app = interface["server"]


def main():
    try:
        interface["run"](debug=_debug)
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received. Shutting down.")


if __name__ == '__main__':
    main()
