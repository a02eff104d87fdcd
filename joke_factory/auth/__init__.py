from .identity import (
    USER_ID_HEADER,
    client_ip,
    get_current_participant,
    parse_user_id,
    require_instructor,
)

__all__ = [
    "USER_ID_HEADER",
    "client_ip",
    "get_current_participant",
    "parse_user_id",
    "require_instructor",
]
