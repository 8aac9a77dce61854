"""
Dev Monitor Router - inspect recent auth events while developing locally.

Mounted outside ``API_PREFIX``; every request answers 404 unless DEV_MODE is on.
"""
import ipaddress
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..auth import normalize_email
from ..config import Settings, get_settings
from ..db import get_db
from ..errors import BadRequestError, NotFoundError
from ..models import AuthEvent

router = APIRouter(prefix="/dev", tags=["dev-monitor"])
logger = logging.getLogger(__name__)

MAX_EVENTS = 1000


def is_local_request(request: Request) -> bool:
    """Loopback, private network (Docker bridges included) or the test client."""
    if not request.client:
        return True

    host = request.client.host
    if host in ("localhost", "testclient"):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return address.is_loopback or address.is_private


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.get("/event-logs")
def get_event_logs(
    request: Request,
    limit: int = 50,
    event_type: Optional[str] = None,
    user_id: Optional[int] = None,
    email: Optional[str] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> List[dict]:
    """
    Most recent auth events first, optionally filtered by type, user or email.

    Raises:
        NotFoundError: DEV_MODE is off
        BadRequestError: ``limit`` outside 1..1000
    """
    if not settings.DEV_MODE:
        logger.warning("Event logs requested with DEV_MODE off from %s", _client_host(request))
        raise NotFoundError("Not found")

    if not is_local_request(request):
        logger.info("Event logs requested from non-local address %s", _client_host(request))

    if not 1 <= limit <= MAX_EVENTS:
        raise BadRequestError(
            f"Limit must be between 1 and {MAX_EVENTS}", errors={"limit": "out_of_range"}
        )

    query = db.query(AuthEvent)
    if event_type:
        query = query.filter(AuthEvent.event_type == event_type)
    if user_id is not None:
        query = query.filter(AuthEvent.user_id == user_id)
    if email:
        query = query.filter(AuthEvent.email == normalize_email(email))

    events = query.order_by(AuthEvent.timestamp.desc()).limit(limit).all()
    logger.info(
        "Event logs served: limit=%s event_type=%s user_id=%s results=%s",
        limit, event_type, user_id, len(events),
    )
    return [event.to_dict() for event in events]
