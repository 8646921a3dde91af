"""Local HTTP trigger service."""

from .trigger_service import create_app, run_server

__all__ = ["create_app", "run_server"]
