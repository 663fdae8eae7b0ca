#!/usr/bin/env python3
"""
Main entry point for the referee league sync server.

This script launches the Flask-based REST gateway.
"""
import logging
import os

from referee_league.api import run_web_app
from referee_league.utils.constants import DEFAULT_DATA_DIR, DEFAULT_HOST, DEFAULT_PORT

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_web_app(
        host=os.environ.get("HOST", DEFAULT_HOST),
        port=int(os.environ.get("PORT", DEFAULT_PORT)),
        data_dir=os.environ.get("DATA_DIR", DEFAULT_DATA_DIR),
    )
