"""Authentication for the local trigger service."""

from .token_auth import BearerTokenAuth, generate_token

__all__ = ["BearerTokenAuth", "generate_token"]
