"""
Request dependencies.

The store, Telegram gateway and persistence manager live on ``app.state`` and
are created in the application lifespan. Tests replace them through
``app.dependency_overrides``.
"""
import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query, Request, status

from fruitmerge.config import Settings, get_settings
from fruitmerge.persistence import PersistenceManager
from fruitmerge.store import GameStore
from fruitmerge.telegram_client import TelegramGateway

logger = logging.getLogger(__name__)


def get_store(request: Request) -> GameStore:
    return request.app.state.store


def get_telegram(request: Request) -> TelegramGateway:
    return request.app.state.telegram


def get_persistence(request: Request) -> Optional[PersistenceManager]:
    return getattr(request.app.state, "persistence", None)


def require_admin(
    request: Request,
    x_admin_password: Optional[str] = Header(default=None),
    password: Optional[str] = Query(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject the request with 401 unless the shared admin password matches."""
    supplied = x_admin_password or password or ""
    if not hmac.compare_digest(supplied.encode("utf-8"), settings.admin_password.encode("utf-8")):
        client_ip = request.client.host if request.client else "unknown"
        logger.warning(f"Rejected admin request to {request.url.path} from {client_ip}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
