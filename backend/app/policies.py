"""Row-level security policies, declared per table.

Each table maps to a tuple of permissive ``Policy`` entries. A policy names
the command it governs (``select``, ``insert``, ``update``, ``delete`` or
``all``) and carries up to two SQL predicates built from the caller's
``Principal``:

- ``using`` — which existing rows the command may see or touch;
- ``check`` — which new row versions an ``insert``/``update`` may produce.
  When omitted, ``using`` doubles as the check.

Applicable policies are OR-ed together. A table with no applicable policy
denies the command. The ``SERVICE`` principal bypasses every policy; it is
reserved for auth, startup seeding and notification lookups.

``gateway.Table`` is the only consumer: it adds ``using_clause`` to every
read/update/delete and verifies ``check_clause`` against flushed rows.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

from sqlalchemy import ColumnElement, exists, false, or_, select, true

from app.database import Base
from app.db_models import (
    Appointment,
    ClientMealPlan,
    Food,
    MealLog,
    MealPlan,
    MealPlanDay,
    MealPlanMeal,
    Message,
    Profile,
    UserRole,
    WeightRecord,
)

Command = Literal["select", "insert", "update", "delete"]


@dataclass(frozen=True)
class Principal:
    """The caller a query runs on behalf of."""

    user_id: int | None = None
    roles: frozenset[str] = field(default_factory=frozenset)
    service: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def has_role(self, role: str) -> bool:
        return role in self.roles


ANONYMOUS = Principal()
SERVICE = Principal(service=True)

Predicate = Callable[[Principal], ColumnElement[bool]]


@dataclass(frozen=True)
class Policy:
    name: str
    command: Literal["select", "insert", "update", "delete", "all"]
    using: Predicate | None = None
    check: Predicate | None = None

    def applies_to(self, command: Command) -> bool:
        return self.command == command or self.command == "all"


# ── Predicate builders ────────────────────────────────────────────────────────


def is_admin(p: Principal) -> ColumnElement[bool]:
    return true() if p.has_role("admin") else false()


def is_authenticated(p: Principal) -> ColumnElement[bool]:
    return true() if p.is_authenticated else false()


def anyone(p: Principal) -> ColumnElement[bool]:
    return true()


def owned_by(column) -> Predicate:  # type: ignore[no-untyped-def]
    """Rows whose ``column`` equals the caller's user id."""

    def predicate(p: Principal) -> ColumnElement[bool]:
        if p.user_id is None:
            return false()
        return column == p.user_id

    return predicate


def _active_assignment_for(plan_id_column) -> Predicate:  # type: ignore[no-untyped-def]
    def predicate(p: Principal) -> ColumnElement[bool]:
        if p.user_id is None:
            return false()
        return exists().where(
            ClientMealPlan.meal_plan_id == plan_id_column,
            ClientMealPlan.client_id == p.user_id,
            ClientMealPlan.status == "active",
        )

    return predicate


def _meal_in_active_assignment(p: Principal) -> ColumnElement[bool]:
    if p.user_id is None:
        return false()
    return (
        select(MealPlanDay.id)
        .join(ClientMealPlan, ClientMealPlan.meal_plan_id == MealPlanDay.meal_plan_id)
        .where(
            MealPlanDay.id == MealPlanMeal.meal_plan_day_id,
            ClientMealPlan.client_id == p.user_id,
            ClientMealPlan.status == "active",
        )
        .exists()
    )


def _own_client_role(p: Principal) -> ColumnElement[bool]:
    if p.user_id is None:
        return false()
    return (UserRole.user_id == p.user_id) & (UserRole.role == "client")


def _own_open_appointment(p: Principal) -> ColumnElement[bool]:
    if p.user_id is None:
        return false()
    return (Appointment.client_id == p.user_id) & Appointment.status.in_(
        ("pending", "confirmed")
    )


def _own_client_side_status(p: Principal) -> ColumnElement[bool]:
    # Clients may cancel or reschedule (back to pending), never confirm.
    if p.user_id is None:
        return false()
    return (Appointment.client_id == p.user_id) & Appointment.status.in_(
        ("pending", "cancelled")
    )


# ── Policy table ──────────────────────────────────────────────────────────────


POLICIES: dict[type[Base], tuple[Policy, ...]] = {
    Profile: (
        Policy("Users can view own profile", "select", owned_by(Profile.id)),
        Policy("Users can update own profile", "update", owned_by(Profile.id)),
        Policy("Users can insert own profile", "insert", check=owned_by(Profile.id)),
        Policy("Admins can view all profiles", "select", is_admin),
    ),
    UserRole: (
        Policy("Users can view own roles", "select", owned_by(UserRole.user_id)),
        Policy("Admins can view all user roles", "select", is_admin),
        Policy(
            "Users can view admin roles",
            "select",
            lambda p: is_authenticated(p) & (UserRole.role == "admin"),
        ),
        Policy("Users can insert own client role", "insert", check=_own_client_role),
    ),
    Appointment: (
        Policy("Clients can view own appointments", "select", owned_by(Appointment.client_id)),
        Policy(
            "Clients can create own appointments",
            "insert",
            check=owned_by(Appointment.client_id),
        ),
        Policy(
            "Clients can update own pending or confirmed appointments",
            "update",
            _own_open_appointment,
            check=_own_client_side_status,
        ),
        Policy("Admins can view all appointments", "select", is_admin),
        Policy("Admins can update all appointments", "update", is_admin),
        Policy("Admins can delete all appointments", "delete", is_admin),
    ),
    MealPlan: (
        Policy("Admins can manage meal plans", "all", is_admin),
        Policy(
            "Clients can view assigned meal plans",
            "select",
            _active_assignment_for(MealPlan.id),
        ),
    ),
    MealPlanDay: (
        Policy("Admins can manage meal plan days", "all", is_admin),
        Policy(
            "Clients can view days of assigned meal plans",
            "select",
            _active_assignment_for(MealPlanDay.meal_plan_id),
        ),
    ),
    MealPlanMeal: (
        Policy("Admins can manage meals", "all", is_admin),
        Policy("Clients can view meals of assigned plans", "select", _meal_in_active_assignment),
    ),
    ClientMealPlan: (
        Policy("Admins can manage assignments", "all", is_admin),
        Policy("Clients can view own assignments", "select", owned_by(ClientMealPlan.client_id)),
    ),
    MealLog: (
        Policy("Users can manage own meal logs", "all", owned_by(MealLog.user_id)),
        Policy("Admins can view all meal logs", "select", is_admin),
    ),
    WeightRecord: (
        Policy("Users can view own weight history", "select", owned_by(WeightRecord.user_id)),
        Policy(
            "Users can insert own weight records",
            "insert",
            check=owned_by(WeightRecord.user_id),
        ),
        Policy("Admins can view all weight history", "select", is_admin),
    ),
    Food: (
        Policy("Anyone can view foods", "select", anyone),
        Policy("Only admins can modify foods", "all", is_admin),
    ),
    Message: (
        Policy("Admins can view all messages", "select", is_admin),
        Policy("Admins can send messages", "insert", check=is_admin),
        Policy(
            "Users can view own messages",
            "select",
            lambda p: or_(owned_by(Message.sender_id)(p), owned_by(Message.recipient_id)(p)),
        ),
        Policy(
            "Users can update own received messages",
            "update",
            owned_by(Message.recipient_id),
        ),
        Policy("Clients can send messages", "insert", check=owned_by(Message.sender_id)),
    ),
}


def policies_for(model: type[Base], command: Command) -> list[Policy]:
    return [p for p in POLICIES.get(model, ()) if p.applies_to(command)]


def using_clause(
    model: type[Base], principal: Principal, command: Command
) -> ColumnElement[bool]:
    """Combined row filter for ``select``/``update``/``delete``."""
    if principal.service:
        return true()
    predicates = [p.using(principal) for p in policies_for(model, command) if p.using]
    return or_(*predicates) if predicates else false()


def check_clause(
    model: type[Base], principal: Principal, command: Command
) -> ColumnElement[bool]:
    """Combined predicate that new rows from ``insert``/``update`` must satisfy."""
    if principal.service:
        return true()
    predicates = []
    for policy in policies_for(model, command):
        predicate = policy.check or policy.using
        if predicate is not None:
            predicates.append(predicate(principal))
    return or_(*predicates) if predicates else false()
