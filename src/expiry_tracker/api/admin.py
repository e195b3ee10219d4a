"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from expiry_tracker.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health(request: Request) -> dict[str, object]:
    """Admin health check with sweeper status."""
    container: AppContainer = request.app.state.container
    return {"status": "ok", "sweeper_running": container.sweeper.running}


@router.get("/sessions", dependencies=[Depends(require_admin)])
async def list_sessions(request: Request) -> dict[str, object]:
    """Return live handoff sessions with their image counts."""
    container: AppContainer = request.app.state.container
    sessions = []
    for session in container.store.list_live_sessions():
        sessions.append(
            {
                "session_id": session.id,
                "created_at": session.created_at.isoformat(),
                "image_count": len(container.store.list_images(session.id)),
            }
        )
    return {"sessions": sessions}


@router.post("/sweep", dependencies=[Depends(require_admin)])
async def run_sweep(request: Request) -> dict[str, object]:
    """Run one TTL sweep immediately."""
    container: AppContainer = request.app.state.container
    report = container.sweeper.run_once()
    return {
        "deleted_sessions": report.deleted_sessions,
        "deleted_images": report.deleted_images,
        "deleted_blobs": report.deleted_blobs,
        "failed_sessions": report.failed_sessions,
    }
