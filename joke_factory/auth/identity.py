import logging
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from joke_factory.data.game_store import GameStore
from joke_factory.database import get_db
from joke_factory.models import Participant
from joke_factory.services.errors import Forbidden, SessionLost

logger = logging.getLogger("joke_factory.auth")

USER_ID_HEADER = "X-User-Id"


def parse_user_id(raw: Optional[str]) -> int:
    """Turn the X-User-Id header into a participant id or raise SessionLost."""
    if raw is None or not raw.strip():
        raise SessionLost("UNAUTHENTICATED", f"Missing {USER_ID_HEADER} header.")
    try:
        user_id = int(raw.strip())
    except ValueError:
        raise SessionLost(
            "INVALID_SESSION", "Unknown session. Please login again."
        ) from None
    if user_id <= 0:
        raise SessionLost("INVALID_SESSION", "Unknown session. Please login again.")
    return user_id


def get_current_participant(
    request: Request,
    x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
    db: Session = Depends(get_db),
) -> Participant:
    user_id = parse_user_id(x_user_id)
    GameStore(db).ensure_seeded()
    participant = db.get(Participant, user_id)
    if participant is None:
        logger.info("Rejected unknown session %s for %s", user_id, request.url.path)
        raise SessionLost("INVALID_SESSION", "Unknown session. Please login again.")
    request.state.user_id = participant.user_id
    request.state.display_name = participant.display_name
    return participant


def require_instructor(
    participant: Participant = Depends(get_current_participant),
) -> Participant:
    if not participant.is_instructor:
        logger.warning(
            "Participant %s attempted an instructor action", participant.user_id
        )
        raise Forbidden("FORBIDDEN", "Instructor only.")
    return participant


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""
