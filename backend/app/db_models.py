"""SQLAlchemy ORM table definitions for the nutrition coaching platform.

Auth tables:
- ``users``             — login identities (email + bcrypt hash)
- ``auth_sessions``     — bearer tokens issued at login
- ``user_roles``        — ``admin`` / ``client`` role grants

Application tables:
- ``profiles``          — one row per user: contact details, health metrics, goals
- ``appointments``      — consultation bookings
- ``meal_plans``        — plan templates, composed of ``meal_plan_days``,
  which are composed of ``meal_plan_meals``
- ``client_meal_plans`` — assignments of a plan to a client
- ``meal_logs``         — meals eaten (manual or completed from a plan)
- ``weight_history``    — dated weight records
- ``foods``             — nutrition reference table
- ``messages``          — nutritionist/client messages

Business invariants (enumerated statuses, positive quantities, uniqueness,
cascades) are declared here as constraints and enforced by the database.
Who may read or write which rows is declared separately in ``policies.py``.

Import this module before calling ``database.create_tables()`` so all models
are registered with ``Base.metadata``.
"""

from datetime import date, datetime, time, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

MEAL_TYPES = ("breakfast", "lunch", "dinner", "snack")
APPOINTMENT_STATUSES = ("pending", "confirmed", "cancelled", "completed")
ASSIGNMENT_STATUSES = ("active", "completed", "cancelled")
ROLES = ("admin", "client")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _in(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


# ── Auth ──────────────────────────────────────────────────────────────────────


class User(Base):
    """A login identity. Profile data lives in ``profiles``."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    profile: Mapped["Profile"] = relationship(
        "Profile", back_populates="user", uselist=False, passive_deletes=True
    )


class AuthSession(Base):
    """A bearer token issued by ``auth_service.login``."""

    __tablename__ = "auth_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class UserRole(Base):
    """A role grant. Kept apart from ``profiles`` so users cannot edit it."""

    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
        CheckConstraint(_in("role", ROLES), name="ck_user_roles_role"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="client")


# ── Profiles ──────────────────────────────────────────────────────────────────


class Profile(Base):
    """Per-user profile shared by clients and the nutritionist.

    Clients fill in ``phone``/``dietary_goals`` and the onboarding health
    metrics; the nutritionist uses ``bio``/``credentials``.
    """

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("age IS NULL OR age > 0", name="ck_profiles_age"),
        CheckConstraint("height_cm IS NULL OR height_cm > 0", name="ck_profiles_height"),
        CheckConstraint(
            "current_weight_kg IS NULL OR current_weight_kg > 0",
            name="ck_profiles_current_weight",
        ),
        CheckConstraint(
            "target_weight_kg IS NULL OR target_weight_kg > 0",
            name="ck_profiles_target_weight",
        ),
    )

    id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    dietary_goals: Mapped[str | None] = mapped_column(Text, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    credentials: Mapped[str | None] = mapped_column(Text, nullable=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height_cm: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_weight_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    target_weight_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    target_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    onboarding_completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    user: Mapped["User"] = relationship("User", back_populates="profile")


# ── Appointments ──────────────────────────────────────────────────────────────


class Appointment(Base):
    """A consultation booked by a client.

    ``notes`` belongs to the nutritionist; ``client_notes`` to the client.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint(_in("status", APPOINTMENT_STATUSES), name="ck_appointments_status"),
        CheckConstraint("duration_minutes > 0", name="ck_appointments_duration"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    appointment_time: Mapped[str] = mapped_column(String(5), nullable=False)  # "HH:MM"
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


# ── Meal plans ────────────────────────────────────────────────────────────────


class MealPlan(Base):
    """A reusable meal plan authored by the nutritionist."""

    __tablename__ = "meal_plans"
    __table_args__ = (
        CheckConstraint("duration_days > 0", name="ck_meal_plans_duration"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    created_by: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    is_template: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    days: Mapped[list["MealPlanDay"]] = relationship(
        "MealPlanDay", back_populates="meal_plan", passive_deletes=True
    )


class MealPlanDay(Base):
    """One numbered day (1-based) of a meal plan."""

    __tablename__ = "meal_plan_days"
    __table_args__ = (
        CheckConstraint("day_number > 0", name="ck_meal_plan_days_day_number"),
        UniqueConstraint("meal_plan_id", "day_number", name="uq_meal_plan_days_plan_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    meal_plan_id: Mapped[int] = mapped_column(
        ForeignKey("meal_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_number: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    meal_plan: Mapped["MealPlan"] = relationship("MealPlan", back_populates="days")
    meals: Mapped[list["MealPlanMeal"]] = relationship(
        "MealPlanMeal", back_populates="day", passive_deletes=True
    )


class MealPlanMeal(Base):
    """A single meal within a meal plan day."""

    __tablename__ = "meal_plan_meals"
    __table_args__ = (
        CheckConstraint(_in("meal_type", MEAL_TYPES), name="ck_meal_plan_meals_meal_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    meal_plan_day_id: Mapped[int] = mapped_column(
        ForeignKey("meal_plan_days.id", ondelete="CASCADE"), nullable=False, index=True
    )
    meal_type: Mapped[str] = mapped_column(String(16), nullable=False)
    meal_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    calories: Mapped[int | None] = mapped_column(Integer, nullable=True)
    protein_grams: Mapped[float | None] = mapped_column(Float, nullable=True)
    carbs_grams: Mapped[float | None] = mapped_column(Float, nullable=True)
    fat_grams: Mapped[float | None] = mapped_column(Float, nullable=True)
    ingredients: Mapped[str | None] = mapped_column(Text, nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    day: Mapped["MealPlanDay"] = relationship("MealPlanDay", back_populates="meals")


class ClientMealPlan(Base):
    """Assignment of a meal plan to a client.

    Clients can only see a plan (and its days and meals) while one of
    their assignments for it is ``active``.
    """

    __tablename__ = "client_meal_plans"
    __table_args__ = (
        CheckConstraint(_in("status", ASSIGNMENT_STATUSES), name="ck_client_meal_plans_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    meal_plan_id: Mapped[int] = mapped_column(
        ForeignKey("meal_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assigned_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


# ── Tracking ──────────────────────────────────────────────────────────────────


class MealLog(Base):
    """A meal eaten by a client, logged manually or completed from a plan."""

    __tablename__ = "meal_logs"
    __table_args__ = (
        CheckConstraint(_in("meal_type", MEAL_TYPES), name="ck_meal_logs_meal_type"),
        CheckConstraint("calories IS NULL OR calories >= 0", name="ck_meal_logs_calories"),
        CheckConstraint(
            "(protein_grams IS NULL OR protein_grams >= 0) "
            "AND (carbs_grams IS NULL OR carbs_grams >= 0) "
            "AND (fat_grams IS NULL OR fat_grams >= 0)",
            name="ck_meal_logs_macros",
        ),
        Index("idx_meal_logs_user_date", "user_id", "logged_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    meal_name: Mapped[str] = mapped_column(String(255), nullable=False)
    meal_type: Mapped[str] = mapped_column(String(16), nullable=False)
    calories: Mapped[int | None] = mapped_column(Integer, nullable=True)
    protein_grams: Mapped[float | None] = mapped_column(Float, nullable=True)
    carbs_grams: Mapped[float | None] = mapped_column(Float, nullable=True)
    fat_grams: Mapped[float | None] = mapped_column(Float, nullable=True)
    photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    logged_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    logged_time: Mapped[time] = mapped_column(
        Time, nullable=False, default=lambda: datetime.now().time().replace(microsecond=0)
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class WeightRecord(Base):
    """A dated weight measurement."""

    __tablename__ = "weight_history"
    __table_args__ = (
        CheckConstraint("weight_kg > 0", name="ck_weight_history_weight"),
        Index("idx_weight_history_user_date", "user_id", "recorded_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    weight_kg: Mapped[float] = mapped_column(Float, nullable=False)
    recorded_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class Food(Base):
    """Nutrition reference entry (values per 100 g plus a common serving)."""

    __tablename__ = "foods"
    __table_args__ = (
        CheckConstraint("calories_per_100g >= 0", name="ck_foods_calories"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    food_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    calories_per_100g: Mapped[int] = mapped_column(Integer, nullable=False)
    protein_per_100g: Mapped[float | None] = mapped_column(Float, nullable=True)
    carbs_per_100g: Mapped[float | None] = mapped_column(Float, nullable=True)
    fat_per_100g: Mapped[float | None] = mapped_column(Float, nullable=True)
    common_serving_size: Mapped[str | None] = mapped_column(String(64), nullable=True)
    common_serving_calories: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class Message(Base):
    """A message between the nutritionist and a client."""

    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint(
            "length(trim(message)) > 0 AND length(message) <= 2000",
            name="ck_messages_message_length",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sender_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    recipient_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
