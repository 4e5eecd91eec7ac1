"""
asgi.py -- Application assembly for BookApp.

This is the ONLY place that reads configuration from the environment. It
builds the Settings value once and hands it to create_app(); everything
below receives configuration explicitly.

Run with:  uvicorn asgi:app --reload
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
