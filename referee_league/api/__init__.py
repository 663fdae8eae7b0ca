"""
API package for the referee league sync application.

This package contains the Flask REST gateway shared by all clients.
"""
from .web_app import create_app, run_web_app

__all__ = ["create_app", "run_web_app"]
