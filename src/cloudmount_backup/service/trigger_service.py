"""Loopback-only HTTP service that reports sync status and triggers syncs.

Endpoints:
    GET  /status  current status, last result and last error
    POST /sync    run one sync and return its result

Both endpoints require ``Authorization: Bearer <token>``. The token is
checked before the entry store or the orchestrator is touched.
"""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..auth.token_auth import BearerTokenAuth
from ..config.settings import BackupConfig, is_loopback_host
from ..errors import (AuthFailure, BackupError, ConfigurationError, DestinationError, InvalidPathError,
                      NoEntriesError, SyncAlreadyRunning)
from ..sync.backup_manager import BackupManager

logger = logging.getLogger(__name__)

# Checked in order; the first matching class wins
STATUS_CODES = (
    (SyncAlreadyRunning, 409),
    (DestinationError, 409),
    (NoEntriesError, 400),
    (InvalidPathError, 422),
)


def status_code_for(error: BackupError) -> int:
    """Map a backup error to its HTTP status code."""
    for error_class, status_code in STATUS_CODES:
        if isinstance(error, error_class):
            return status_code
    return 500


def create_app(manager: BackupManager, auth: BearerTokenAuth) -> FastAPI:
    """Build the trigger service application.

    Args:
        manager: Backup manager shared with every other caller in the process
        auth: Bearer token verifier

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="CloudMount Backup Trigger",
        description="Local trigger for rsync backups to a cloud-mounted folder",
        version=__version__,
    )

    def require_token(authorization: Optional[str] = Header(None)):
        auth.verify(authorization)

    @app.exception_handler(AuthFailure)
    async def auth_failure_handler(request: Request, exc: AuthFailure):
        return JSONResponse(
            status_code=401,
            content={"error": exc.reason},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(BackupError)
    async def backup_error_handler(request: Request, exc: BackupError):
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(f"❌ {request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.get("/status", dependencies=[Depends(require_token)])
    async def get_status():
        """Current sync status, last result and last error."""
        return manager.get_status()

    @app.post("/sync", dependencies=[Depends(require_token)])
    async def trigger_sync():
        """Run one sync of all entries and return its result."""
        logger.info("🚀 Sync triggered over HTTP")
        result = await manager.run_backup_async()
        return result.to_dict()

    return app


def run_server(manager: BackupManager, config: BackupConfig):
    """Serve the trigger endpoints until interrupted.

    Args:
        manager: Backup manager
        config: Configuration holding the trigger settings
    """
    import uvicorn

    trigger = config.trigger
    if not trigger.enabled:
        raise ConfigurationError("trigger service is disabled in the configuration")
    if not is_loopback_host(trigger.host):
        raise ConfigurationError(f"refusing to bind trigger service to non-loopback host {trigger.host}")
    if not trigger.token:
        raise ConfigurationError("no trigger token configured; run 'cloudmount-backup token'")

    app = create_app(manager, BearerTokenAuth(trigger.token))
    logger.info(f"Trigger service listening on {trigger.base_url}")
    uvicorn.run(app, host=trigger.host, port=trigger.port, log_level="warning")
