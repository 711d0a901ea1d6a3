"""Main application module for the product video miner."""
from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

# Settings are read when ``miner`` is imported, so the env file goes first.
load_dotenv(os.getenv("VIDEOMINER_DOTENV", ".env"))

from api_routes import register_routes  # noqa: E402
from app_utils import get_env  # noqa: E402

# Constants
PROJECT_ROOT = Path(__file__).resolve().parent
LOG_DIR = PROJECT_ROOT / "logs"
DEFAULT_PORT = 5000
DEFAULT_HOST = "127.0.0.1"
DEFAULT_DEBUG = False

LOG_DIR.mkdir(exist_ok=True)

# Configure logging
logging.basicConfig(
    level=get_env("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.FileHandler(LOG_DIR / "videominer.log"),
        logging.StreamHandler(),
    ],
)

logger = logging.getLogger("videominer")


def create_app() -> Flask:
    """Build the Flask app with CORS and every API route registered."""
    flask_app = Flask(__name__)
    CORS(flask_app)
    register_routes(flask_app)
    return flask_app


app = create_app()

__all__ = ["app", "create_app"]
