from .session import (
    ErrorResponse,
    InstructorLoginRequest,
    JoinRequest,
    SessionResponse,
    TeamMembersResponse,
)
from .rounds import ActiveRoundsResponse, RoundOut, TeamsResponse
from .views import RoleView, SessionView

__all__ = [
    "ErrorResponse",
    "InstructorLoginRequest",
    "JoinRequest",
    "SessionResponse",
    "TeamMembersResponse",
    "ActiveRoundsResponse",
    "RoundOut",
    "TeamsResponse",
    "RoleView",
    "SessionView",
]
