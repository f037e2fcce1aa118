"""
Centralised authorization decisions.

Every permission check in the API goes through :func:`authorize` (or
:func:`enforce`, which raises). The decision only looks at the principal
and a :class:`Target` describing who owns the resource; resolving the
owning organization of an event, signup or certificate is the caller's job.
"""

import enum
import logging
from typing import Any, Mapping, NamedTuple

from fastapi import status
from pydantic import BaseModel, ConfigDict

from app.api.users.models import UserRoles
from app.response import CustomHTTPException

logger = logging.getLogger(__name__)


class Principal(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    role: UserRoles
    organization_id: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRoles.admin

    @property
    def is_organizer(self) -> bool:
        return self.role == UserRoles.organizer


class Target(NamedTuple):
    user_id: int | None = None
    organization_id: int | None = None


class Decision(NamedTuple):
    allowed: bool
    reason: str | None = None


class Scope(enum.Enum):
    any = "any"
    self = "self"
    organization = "organization"


class Action(enum.Enum):
    list_users = "list_users"
    view_user = "view_user"
    view_user_summary = "view_user_summary"
    update_user = "update_user"
    delete_user = "delete_user"
    link_user_organization = "link_user_organization"
    view_organization_members = "view_organization_members"
    create_organization = "create_organization"
    update_organization = "update_organization"
    delete_organization = "delete_organization"
    approve_organization = "approve_organization"
    manage_event = "manage_event"
    create_signup = "create_signup"
    view_signup = "view_signup"
    cancel_signup = "cancel_signup"
    list_signups = "list_signups"
    view_event_signups = "view_event_signups"
    mark_attendance = "mark_attendance"
    view_attendance = "view_attendance"
    issue_certificate = "issue_certificate"
    manage_certificate = "manage_certificate"
    view_certificate = "view_certificate"
    list_certificates = "list_certificates"
    view_volunteer_metrics = "view_volunteer_metrics"
    view_organization_metrics = "view_organization_metrics"
    view_admin_metrics = "view_admin_metrics"
    view_audit_logs = "view_audit_logs"
    view_notifications = "view_notifications"


class Rule(NamedTuple):
    scopes: Mapping[UserRoles, frozenset]
    denials: Mapping[UserRoles, str]


V = UserRoles.volunteer
O = UserRoles.organizer

SELF = frozenset({Scope.self})
ORG = frozenset({Scope.organization})
SELF_OR_ORG = frozenset({Scope.self, Scope.organization})
ANY = frozenset({Scope.any})

ADMIN_ONLY = "This action requires an admin account"


def _admin_only() -> Rule:
    return Rule({}, {V: ADMIN_ONLY, O: ADMIN_ONLY})


# admins are never looked up here; they pass every action
RULES: dict[Action, Rule] = {
    Action.list_users: _admin_only(),
    Action.view_user: Rule(
        {V: SELF, O: SELF},
        {
            V: "You can only view your own profile",
            O: "Organizers can only view limited details of other users",
        },
    ),
    Action.view_user_summary: Rule(
        {V: SELF, O: ANY}, {V: "You can only view your own profile"}
    ),
    Action.update_user: Rule(
        {V: SELF, O: SELF},
        {
            V: "You can only update your own profile unless you are an admin",
            O: "You can only update your own profile unless you are an admin or organizer",
        },
    ),
    Action.delete_user: _admin_only(),
    Action.link_user_organization: _admin_only(),
    Action.view_organization_members: Rule(
        {O: ORG},
        {
            V: "Only organizers and admins can view organization members",
            O: "Organizers can only view members of their own organization",
        },
    ),
    Action.create_organization: Rule(
        {O: ANY}, {V: "Only organizers and admins can create organizations"}
    ),
    Action.update_organization: Rule(
        {O: ORG},
        {
            V: "Volunteers cannot update organizations",
            O: "Organizers can only update their own organization",
        },
    ),
    Action.delete_organization: Rule(
        {O: ORG},
        {
            V: "Volunteers cannot delete organizations",
            O: "Organizers can only delete their own organization",
        },
    ),
    Action.approve_organization: _admin_only(),
    Action.manage_event: Rule(
        {O: ORG},
        {
            V: "Volunteers cannot create or modify events",
            O: "Organizers can only manage events for their own organization",
        },
    ),
    Action.create_signup: Rule(
        {V: SELF, O: SELF},
        {
            V: "You can only sign yourself up for events",
            O: "Organizers can only sign themselves up for events",
        },
    ),
    Action.view_signup: Rule(
        {V: SELF, O: SELF_OR_ORG},
        {
            V: "You can only view your own signups",
            O: "Organizers can only view signups for their own organization's events",
        },
    ),
    Action.cancel_signup: Rule(
        {V: SELF, O: SELF_OR_ORG},
        {
            V: "You can only cancel your own signups",
            O: "Organizers can only cancel signups for their own organization's events",
        },
    ),
    Action.list_signups: _admin_only(),
    Action.view_event_signups: Rule(
        {O: ORG},
        {
            V: "Volunteers cannot view the signups of an event",
            O: "Organizers can only view signups for their own organization's events",
        },
    ),
    Action.mark_attendance: Rule(
        {O: ORG},
        {
            V: "Volunteers cannot record attendance",
            O: "Organizers can only record attendance for their own organization's events",
        },
    ),
    Action.view_attendance: Rule(
        {V: SELF, O: SELF_OR_ORG},
        {
            V: "You can only view your own attendance",
            O: "Organizers can only view attendance for their own organization's events",
        },
    ),
    Action.issue_certificate: Rule(
        {O: ORG},
        {
            V: "Volunteers cannot issue certificates",
            O: "Organizers can only issue certificates for their own organization's events",
        },
    ),
    Action.manage_certificate: Rule(
        {O: ORG},
        {
            V: "Volunteers cannot modify certificates",
            O: "Organizers can only modify certificates for their own organization's events",
        },
    ),
    Action.view_certificate: Rule(
        {V: SELF, O: SELF_OR_ORG},
        {
            V: "You can only view your own certificates",
            O: "Organizers can only view certificates for their own organization's events",
        },
    ),
    Action.list_certificates: _admin_only(),
    Action.view_volunteer_metrics: Rule(
        {V: SELF}, {O: "Volunteer metrics are only available to volunteers"}
    ),
    Action.view_organization_metrics: Rule(
        {O: ORG},
        {
            V: "Only organizers and admins can view organization metrics",
            O: "Organizers can only view metrics for their own organization",
        },
    ),
    Action.view_admin_metrics: _admin_only(),
    Action.view_audit_logs: _admin_only(),
    Action.view_notifications: Rule(
        {V: SELF, O: SELF}, {V: "You can only view your own notifications"}
    ),
}


def _in_scope(principal: Principal, scope: Scope, target: Target) -> bool:
    if scope is Scope.any:
        return True
    if scope is Scope.self:
        return target.user_id is not None and target.user_id == principal.user_id
    return (
        principal.organization_id is not None
        and target.organization_id == principal.organization_id
    )


def authorize(
    principal: Principal, action: Action, target: Target | None = None
) -> Decision:
    if principal.is_admin:
        return Decision(True)
    target = target or Target()
    rule = RULES[action]
    for scope in rule.scopes.get(principal.role, ()):
        if _in_scope(principal, scope, target):
            return Decision(True)
    return Decision(False, rule.denials.get(principal.role, "Not Authorized"))


def deny(reason: str) -> CustomHTTPException:
    return CustomHTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        message=reason,
        error_code="INSUFFICIENT_PERMISSIONS",
    )


def enforce(principal: Principal, action: Action, target: Target | None = None):
    decision = authorize(principal, action, target)
    if not decision.allowed:
        logger.warning(
            "denied %s for user %s (%s): %s",
            action.value,
            principal.user_id,
            principal.role.value,
            decision.reason,
        )
        raise deny(decision.reason)
    return decision


USER_ROLE_FIELDS = {"role", "organization_id"}


def authorize_user_update(
    principal: Principal, current: Any, changes: Mapping[str, Any]
) -> Decision:
    """
    Decide whether ``principal`` may apply ``changes`` to the user ``current``.

    Admins and the user themselves may change any field, except that only an
    admin can hand out the admin role. An organizer acting on somebody else
    may only promote a volunteer to organizer and only attach them to the
    organizer's own organization.
    """
    new_role = changes.get("role")
    if isinstance(new_role, str):
        new_role = UserRoles(new_role)

    if principal.is_admin:
        return Decision(True)

    if principal.user_id == current.id:
        if new_role == UserRoles.admin and current.role != UserRoles.admin:
            return Decision(False, "Only admins can grant the admin role")
        return Decision(True)

    if not principal.is_organizer:
        return Decision(False, RULES[Action.update_user].denials[principal.role])

    if new_role is not None and new_role != current.role:
        if current.role != UserRoles.volunteer or new_role != UserRoles.organizer:
            return Decision(
                False, "Organizers can only promote volunteers to organizer role"
            )

    if "organization_id" in changes and (
        changes["organization_id"] != principal.organization_id
        or principal.organization_id is None
    ):
        return Decision(
            False, "Organizers can only assign users to their own organization"
        )

    for key, value in changes.items():
        if key in USER_ROLE_FIELDS:
            continue
        if getattr(current, key, None) != value:
            return Decision(
                False,
                "Organizers can only change the role and organization of other users",
            )
    return Decision(True)


def enforce_user_update(principal: Principal, current: Any, changes: Mapping[str, Any]):
    decision = authorize_user_update(principal, current, changes)
    if not decision.allowed:
        logger.warning(
            "denied user update of %s by %s: %s",
            current.id,
            principal.user_id,
            decision.reason,
        )
        raise deny(decision.reason)
    return decision


def ensure_admin_floor(admin_count: int, deleting: bool = False):
    """The last admin can be neither demoted nor deleted."""
    if admin_count <= 1:
        if deleting:
            message = (
                "Cannot delete the only remaining admin account. "
                "At least one admin must exist."
            )
        else:
            message = (
                "Cannot change the role of the only remaining admin account. "
                "At least one admin must exist."
            )
        raise deny(message)
