"""ASGI entry point: ``uvicorn app:app``."""

from ignis_auth.config import get_settings
from ignis_auth.main import create_app
from ignis_auth.utils.logging import setup_logging

setup_logging(get_settings())

app = create_app()
