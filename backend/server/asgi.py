"""
ASGI entry point for the relay: `uvicorn server.asgi:app`.

Environment (including a local .env file) is read once at import time.
"""

from dotenv import load_dotenv

from config import AppConfig
from server.app import create_app

load_dotenv()

app = create_app(AppConfig.load_from_env())
