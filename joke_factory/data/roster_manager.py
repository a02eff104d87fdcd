from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from joke_factory.database import get_db
from joke_factory.config.loader import (
    get_instructor_settings,
    get_team_formation_settings,
)
from joke_factory.data.game_store import ROSTER_LOCK, StoreManager, utcnow
from joke_factory.models import (
    Assignment,
    Participant,
    ParticipantStatus,
    Role,
    Team,
    ROLE_FROM_WIRE,
    WIRE_ROLE_NAMES,
)
from joke_factory.services.errors import (
    Conflict,
    Forbidden,
    Unauthorized,
    ValidationFailed,
    invalid_request,
)
from joke_factory.services.login_rate_limiter import LoginRateLimiter, login_rate_limiter
from joke_factory.utils.security import verify_instructor_password

logger = logging.getLogger("joke_factory.roster")

MAX_DISPLAY_NAME_LENGTH = 80
_PATCHABLE_FIELDS = {"role", "team_id", "status"}


def feasible_customer_counts(
    eligible: int,
    min_customers: int = 2,
    max_customers: int = 10,
) -> List[int]:
    """
    Customer counts the instructor may pick for ``eligible`` participants.

    A count C is feasible when min <= C <= max, C <= eligible - 2 (one producer
    and one quality-control seat remain) and eligible - C is even so the rest
    split into pairs.
    """
    options: List[int] = []
    for count in range(min_customers, max_customers + 1):
        if count > eligible - 2:
            break
        remaining = eligible - count
        if remaining >= 2 and remaining % 2 == 0:
            options.append(count)
    return options


def wire_role(role: Optional[str]) -> Optional[str]:
    if role is None:
        return None
    return WIRE_ROLE_NAMES[Role(role)]


def parse_role(value: Any) -> Optional[str]:
    """Accept either the wire name (JM, QC) or the full role name."""
    if value is None:
        return None
    raw = str(value).strip().upper()
    if raw in ROLE_FROM_WIRE:
        return ROLE_FROM_WIRE[raw].value
    try:
        return Role(raw).value
    except ValueError:
        raise invalid_request("Unknown role.", role=value) from None


def member_entry(participant: Participant) -> Dict[str, Any]:
    return {
        "user_id": participant.user_id,
        "display_name": participant.display_name,
        "status": participant.status,
        "role": wire_role(participant.role),
        "team_id": participant.team_id,
    }


class RosterManager(StoreManager):
    """Participant registry plus team and role assignment."""

    def __init__(self, db, store=None, rate_limiter: Optional[LoginRateLimiter] = None):
        super().__init__(db, store)
        self.rate_limiter = rate_limiter or login_rate_limiter
        self.formation = get_team_formation_settings()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _clean_name(display_name: Any) -> str:
        name = str(display_name or "").strip()
        if not name:
            raise invalid_request("display_name is required.")
        if len(name) > MAX_DISPLAY_NAME_LENGTH:
            raise invalid_request(
                f"display_name must be at most {MAX_DISPLAY_NAME_LENGTH} characters."
            )
        return name

    def _find_by_name(self, name: str) -> Optional[Participant]:
        return (
            self.db.query(Participant)
            .filter(Participant.display_name_key == name.lower())
            .one_or_none()
        )

    def _eligible(self) -> List[Participant]:
        return [
            participant
            for participant in self.db.query(Participant)
            .order_by(Participant.joined_at, Participant.user_id)
            .all()
            if not participant.is_instructor
        ]

    def _create(self, name: str, role: Optional[Role] = None) -> Participant:
        now = utcnow()
        participant = Participant(
            display_name=name,
            display_name_key=name.lower(),
            status=(
                ParticipantStatus.ASSIGNED.value
                if role is not None
                else ParticipantStatus.WAITING.value
            ),
            joined_at=now,
            assigned_at=now if role is not None else None,
        )
        participant.assignment = Assignment(
            role=role.value if role is not None else None, team_id=None
        )
        self.db.add(participant)
        self.db.flush()
        return participant

    # ------------------------------------------------------------------
    # Joining
    # ------------------------------------------------------------------
    def join(self, display_name: Any) -> Participant:
        name = self._clean_name(display_name)
        with self.store.mutation(ROSTER_LOCK):
            if self._find_by_name(name) is not None:
                raise Conflict("NAME_TAKEN", "Name already taken.", {"display_name": name})
            participant = self._create(name)
        logger.info("Participant %s joined as %r", participant.user_id, name)
        return participant

    def instructor_login(self, display_name: Any, password: str, ip: str = "") -> Participant:
        name = self._clean_name(display_name)
        self.rate_limiter.guard(display_name=name, ip=ip)

        allowed_names = get_instructor_settings()["display_names"]
        allowed = not allowed_names or name.lower() in {n.lower() for n in allowed_names}
        if not allowed or not verify_instructor_password(password or ""):
            self.rate_limiter.record_failure(display_name=name, ip=ip)
            logger.warning("Rejected instructor login for %r from %s", name, ip or "unknown")
            raise Unauthorized("INVALID_CREDENTIALS", "Invalid instructor credentials.")

        with self.store.mutation(ROSTER_LOCK):
            participant = self._find_by_name(name)
            if participant is None:
                participant = self._create(name, Role.INSTRUCTOR)
            elif not participant.is_instructor:
                raise Conflict("NAME_TAKEN", "Name already taken.", {"display_name": name})
        self.rate_limiter.record_success(display_name=name, ip=ip)
        logger.info("Instructor %s signed in as %r", participant.user_id, name)
        return participant

    # ------------------------------------------------------------------
    # Team formation
    # ------------------------------------------------------------------
    def customer_options(self) -> Dict[str, Any]:
        self.store.ensure_seeded()
        eligible = len(self._eligible())
        return {
            "eligible_count": eligible,
            "options": feasible_customer_counts(
                eligible,
                self.formation["min_customers"],
                self.formation["max_customers"],
            ),
        }

    def auto_assign(self, customer_count: int, team_count: int) -> Dict[str, Any]:
        """
        Split every non-instructor participant into customers and producer/QC pairs.

        Participants are taken in join order: the first ``customer_count``
        become customers, the rest are paired off onto the lowest-numbered
        teams with the first member of each pair producing and the second
        grading.
        """
        with self.store.mutation(ROSTER_LOCK):
            eligible = self._eligible()
            teams = self.db.query(Team).order_by(Team.team_id).all()
            details = {
                "customer_count": customer_count,
                "team_count": team_count,
                "eligible_count": len(eligible),
            }
            if customer_count <= 0 or team_count <= 0:
                raise ValidationFailed(
                    "INVALID_TEAM_COUNTS", "Counts must be positive.", details
                )
            if customer_count + 2 * team_count != len(eligible):
                raise ValidationFailed(
                    "INVALID_TEAM_COUNTS",
                    "Customers plus two per team must equal the number of participants.",
                    details,
                )
            if team_count > len(teams):
                raise ValidationFailed(
                    "INVALID_TEAM_COUNTS",
                    f"Only {len(teams)} teams are available.",
                    details,
                )

            now = utcnow()
            customers = eligible[:customer_count]
            pairs = eligible[customer_count:]
            for participant in customers:
                self._apply(participant, Role.CUSTOMER, None, now)

            formed: List[Dict[str, int]] = []
            for index, team in enumerate(teams[:team_count]):
                producer, grader = pairs[2 * index], pairs[2 * index + 1]
                self._apply(producer, Role.PRODUCER, team.team_id, now)
                self._apply(grader, Role.QUALITY_CONTROL, team.team_id, now)
                formed.append(
                    {
                        "team_id": team.team_id,
                        "producer_id": producer.user_id,
                        "quality_control_id": grader.user_id,
                    }
                )
            customer_ids = [participant.user_id for participant in customers]
        logger.info(
            "Auto-assigned %s customers and %s teams", customer_count, team_count
        )
        return {"customers": customer_ids, "teams": formed}

    @staticmethod
    def _apply(participant: Participant, role: Role, team_id: Optional[int], now) -> None:
        if participant.assignment is None:
            participant.assignment = Assignment()
        participant.assignment.role = role.value
        participant.assignment.team_id = team_id
        participant.status = ParticipantStatus.ASSIGNED.value
        participant.assigned_at = now

    def patch_assignment(self, user_id: int, changes: Mapping[str, Any]) -> Participant:
        """
        Manually override a participant's role, team or status.

        Only keys present in ``changes`` are touched; the result is normalised
        so WAITING participants never hold a role or team and customers never
        hold a team.
        """
        unknown = set(changes) - _PATCHABLE_FIELDS
        if unknown:
            raise invalid_request("Unknown fields.", fields=sorted(unknown))

        with self.store.mutation(ROSTER_LOCK):
            participant = self.store.get_participant(user_id)
            if participant.is_instructor:
                raise Forbidden("FORBIDDEN", "Instructors cannot be reassigned.")

            role = participant.role
            team_id = participant.team_id
            status = participant.status

            if "role" in changes:
                role = parse_role(changes["role"])
                if role == Role.INSTRUCTOR.value:
                    raise Forbidden("FORBIDDEN", "Nobody can be promoted to instructor.")
            if "team_id" in changes:
                team_id = changes["team_id"]
            if "status" in changes and changes["status"] is not None:
                try:
                    status = ParticipantStatus(changes["status"]).value
                except ValueError:
                    raise invalid_request("Unknown status.", status=changes["status"]) from None

            if status == ParticipantStatus.WAITING.value and "status" in changes:
                role, team_id = None, None
            if role is None:
                status, team_id = ParticipantStatus.WAITING.value, None
            else:
                status = ParticipantStatus.ASSIGNED.value
            if role == Role.CUSTOMER.value:
                team_id = None
            if team_id is not None:
                self.store.get_team(team_id)

            if participant.assignment is None:
                participant.assignment = Assignment()
            was_assigned = participant.status == ParticipantStatus.ASSIGNED.value
            participant.assignment.role = role
            participant.assignment.team_id = team_id
            participant.status = status
            if status == ParticipantStatus.WAITING.value:
                participant.assigned_at = None
            elif not was_assigned or participant.assigned_at is None:
                participant.assigned_at = utcnow()
        logger.info(
            "Assignment for %s patched: role=%s team=%s status=%s",
            user_id,
            role,
            team_id,
            status,
        )
        return participant

    def remove(self, user_id: int) -> int:
        with self.store.mutation(ROSTER_LOCK):
            participant = self.store.get_participant(user_id)
            if participant.is_instructor:
                raise Conflict(
                    "CANNOT_DELETE_INSTRUCTOR",
                    "Cannot delete instructor.",
                    {"user_id": user_id},
                )
            self.db.delete(participant)
        logger.info("Participant %s removed", user_id)
        return user_id

    def rename_team(self, team_id: int, name: Any) -> Team:
        cleaned = str(name or "").strip()
        if not cleaned or len(cleaned) > MAX_DISPLAY_NAME_LENGTH:
            raise invalid_request("Team name must be 1-80 characters.")
        with self.store.mutation(ROSTER_LOCK):
            team = self.store.get_team(team_id)
            team.name = cleaned
        return team

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------
    def list_teams(self) -> List[Team]:
        self.store.ensure_seeded()
        return self.db.query(Team).order_by(Team.team_id).all()

    def lobby(self) -> Dict[str, Any]:
        teams = self.list_teams()
        participants = (
            self.db.query(Participant)
            .order_by(Participant.joined_at, Participant.user_id)
            .all()
        )
        members_by_team: Dict[int, List[Dict[str, Any]]] = {t.team_id: [] for t in teams}
        customers: List[Dict[str, Any]] = []
        unassigned: List[Dict[str, Any]] = []
        instructors: List[Dict[str, Any]] = []
        for participant in participants:
            entry = member_entry(participant)
            role = participant.role
            if role == Role.INSTRUCTOR.value:
                instructors.append(entry)
            elif role == Role.CUSTOMER.value:
                customers.append(entry)
            elif role is None:
                unassigned.append(entry)
            elif participant.team_id in members_by_team:
                members_by_team[participant.team_id].append(entry)
            else:
                # Producer or QC seat not yet placed on a team.
                unassigned.append(entry)

        assigned = sum(1 for p in participants if p.role is not None and not p.is_instructor)
        return {
            "summary": {
                "waiting": len(unassigned),
                "assigned": assigned,
                "team_count": len(teams),
                "customer_count": len(customers),
                "eligible_count": sum(1 for p in participants if not p.is_instructor),
            },
            "teams": [
                {"team": team.to_dict(), "members": members_by_team[team.team_id]}
                for team in teams
            ],
            "customers": customers,
            "unassigned": unassigned,
            "instructors": instructors,
        }

    def team_members(self, participant: Participant) -> List[Dict[str, Any]]:
        """Teammates (including the caller) of the caller's team, in join order."""
        self.store.ensure_seeded()
        team_id = participant.team_id
        if team_id is None:
            return []
        rows = (
            self.db.query(Participant)
            .join(Assignment, Assignment.user_id == Participant.user_id)
            .filter(Assignment.team_id == team_id)
            .order_by(Participant.joined_at, Participant.user_id)
            .all()
        )
        return [member_entry(row) for row in rows]


__all__ = [
    "RosterManager",
    "feasible_customer_counts",
    "member_entry",
    "parse_role",
    "wire_role",
]


def get_roster_manager(db: Session = Depends(get_db)) -> RosterManager:
    """Dependency provider for RosterManager."""
    return RosterManager(db=db)
