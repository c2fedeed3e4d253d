"""
HTTP layer for pk-shorts.

Responsibilities:
    - Redirect short identifiers to their destinations and count the click
    - JSON endpoints to create, list and delete links
    - Health check

Architecture:
    - App Factory pattern (create_app) for test isolation and DI.
    - All storage rules live in LinkManager/LinkStore; this module only maps
      requests to calls and domain errors to status codes.
    - The bucket is opened once per app. A failure to open it aborts startup.

Run:
    uvicorn main:create_app --factory --port 8080
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from pk_shorts.config import settings
from pk_shorts.errors import (
    AlreadyExistsError,
    InvalidCustomIdError,
    InvalidDestinationError,
    LinkNotFoundError,
    StorageError,
)
from pk_shorts.manager.link_manager import LinkManager
from pk_shorts.storage.storage_factory import open_link_store

log = logging.getLogger("pk_shorts.http")


class CreateLinkRequest(BaseModel):
    """Request payload for creating a new short link."""
    url: str
    secure: bool = False
    custom_id: Optional[str] = None


def create_app(link_manager: Optional[LinkManager] = None) -> FastAPI:
    """
    Factory function to build and configure a new FastAPI app instance.

    Args:
        link_manager: Pre-wired manager (tests). When omitted, the bucket is
            opened from environment configuration.

    Returns:
        FastAPI: A fully configured application instance.
    """
    if not logging.getLogger().handlers:
        logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))

    manager = link_manager or LinkManager(open_link_store())
    prefix = settings.SHORT_PREFIX
    ui_prefix = settings.UI_PREFIX

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("Storage backend: %s", type(manager.store.storage).__name__)
        log.info("Short link prefix: %s", prefix)
        log.info("UI prefix: %s", ui_prefix)
        yield
        manager.store.close()

    app = FastAPI(
        title="pk-shorts",
        description="Short links with click counting",
        lifespan=lifespan,
    )

    def _short_url(request: Request, short: str) -> str:
        return f"{request.url.scheme}://{request.url.netloc}{prefix}/{short}"

    # ----------------------------------------------------------------
    # Routes
    # ----------------------------------------------------------------
    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "healthy"}

    @app.post(f"{ui_prefix}/api/create")
    def api_create(req: CreateLinkRequest, request: Request) -> Dict[str, Any]:
        """
        Create a short link.

        Status codes:
            400 invalid URL or custom id, 409 custom id taken, 500 storage failure.
        """
        try:
            short = manager.create_link(req.url, secure=req.secure, custom_id=req.custom_id)
        except (InvalidDestinationError, InvalidCustomIdError) as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except AlreadyExistsError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        except StorageError:
            log.exception("Failed to create short link")
            raise HTTPException(status_code=500, detail="Failed to create short link")

        return {
            "short": short,
            "short_url": _short_url(request, short),
            "original": manager.normalize_destination(req.url),
            "secure": req.secure,
        }

    @app.get(f"{ui_prefix}/api/list")
    def api_list() -> List[Dict[str, Any]]:
        try:
            links = manager.list_links()
        except StorageError:
            log.exception("Failed to get links")
            raise HTTPException(status_code=500, detail="Failed to get links")
        return [link.model_dump(mode="json", by_alias=True) for link in links]

    @app.delete(f"{ui_prefix}/api/delete/{{short}}")
    def api_delete(short: str) -> Dict[str, str]:
        try:
            manager.remove_link(short)
        except LinkNotFoundError:
            raise HTTPException(status_code=404, detail="Link not found")
        except StorageError:
            log.exception("Failed to delete link %r", short)
            raise HTTPException(status_code=500, detail="Failed to delete link")
        return {"status": "deleted", "short": short}

    @app.get(f"{prefix}/{{short}}")
    def redirect(short: str, background_tasks: BackgroundTasks) -> RedirectResponse:
        """Redirect to the destination; the click is counted after the response."""
        try:
            url = manager.resolve_link(short)
        except LinkNotFoundError:
            raise HTTPException(status_code=404, detail="Not Found")
        except StorageError:
            log.exception("Failed to resolve %r", short)
            raise HTTPException(status_code=500, detail="Internal Server Error")

        background_tasks.add_task(manager.record_click, short)
        return RedirectResponse(url=url, status_code=302)

    return app
