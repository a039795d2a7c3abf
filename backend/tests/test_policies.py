"""Unit tests for policy selection and predicate composition.

Database-level behaviour (what each caller can actually read and write) is
covered by the ``test_api_*`` modules.
"""

from sqlalchemy import create_engine, literal, select

from app.db_models import Appointment, Food, MealPlan, Message, Profile, User
from app.policies import (
    ANONYMOUS,
    SERVICE,
    Principal,
    check_clause,
    policies_for,
    using_clause,
)

ADMIN = Principal(user_id=1, roles=frozenset({"admin"}))
CLIENT = Principal(user_id=2, roles=frozenset({"client"}))

_engine = create_engine("sqlite://")


def _allows(clause) -> bool:  # type: ignore[no-untyped-def]
    """True when a constant policy clause lets a row through."""
    with _engine.connect() as conn:
        return conn.execute(select(literal(1)).where(clause)).first() is not None


class TestPolicySelection:
    def test_all_policies_apply_to_every_command(self) -> None:
        for command in ("select", "insert", "update", "delete"):
            names = [p.name for p in policies_for(MealPlan, command)]
            assert "Admins can manage meal plans" in names

    def test_select_only_policy_not_used_for_updates(self) -> None:
        names = [p.name for p in policies_for(Appointment, "update")]
        assert "Clients can view own appointments" not in names
        assert "Clients can update own pending or confirmed appointments" in names

    def test_table_without_policies(self) -> None:
        assert policies_for(User, "select") == []


class TestClauses:
    """Constant clauses are evaluated on an in-memory SQLite engine, so the
    assertions hold whether or not SQLAlchemy folds ``or_(true())``."""

    def test_service_bypasses_everything(self) -> None:
        assert _allows(using_clause(User, SERVICE, "select"))
        assert _allows(check_clause(Message, SERVICE, "insert"))

    def test_no_policy_denies(self) -> None:
        assert not _allows(using_clause(User, CLIENT, "select"))

    def test_anonymous_sees_no_profiles(self) -> None:
        assert not _allows(using_clause(Profile, ANONYMOUS, "select"))

    def test_anyone_reads_foods(self) -> None:
        assert _allows(using_clause(Food, ANONYMOUS, "select"))

    def test_admin_manages_meal_plans(self) -> None:
        assert _allows(check_clause(MealPlan, ADMIN, "insert"))
        assert not _allows(check_clause(MealPlan, CLIENT, "insert"))

    def test_owner_predicate_mentions_user(self) -> None:
        clause = using_clause(Appointment, CLIENT, "select")
        compiled = str(clause.compile(compile_kwargs={"literal_binds": True}))
        assert "appointments.client_id = 2" in compiled

    def test_delete_without_policy_denied_for_clients(self) -> None:
        assert not _allows(using_clause(Appointment, CLIENT, "delete"))
