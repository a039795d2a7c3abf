"""Database service layer: async features for clients and the nutritionist.

Every function takes the caller's ``Principal`` and reaches the database
only through ``gateway.Table``, so the row-level policies decide what each
caller can read and write. Functions here add the workflow around those
reads and writes (defaults, joins of names and titles, follow-up
notifications) and commit once the primary write is done.

Notifications are secondary: they run after the commit and a failure is
logged, never raised.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import date, datetime
from typing import Any

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from app import auth_service, logic, notification_service
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
from app.errors import AuthError, NotFoundError, NotificationError
from app.gateway import Table
from app.models import (
    AppointmentAdminUpdate,
    AppointmentCreate,
    AppointmentNotification,
    AppointmentRecord,
    AppointmentRequestNotification,
    AppointmentReschedule,
    AssignmentCreate,
    AssignmentRecord,
    AssignmentUpdate,
    ClientSummary,
    DailyMealLog,
    DashboardStats,
    FoodCreate,
    FoodRecord,
    MarkReadRequest,
    MealCompletionResult,
    MealCompletionToggle,
    MealLogCreate,
    MealLogRecord,
    MealLogUpdate,
    MealPlanDayInput,
    MealPlanDayRecord,
    MealPlanDetail,
    MealPlanInput,
    MealPlanNotification,
    MealPlanSummary,
    MealRecord,
    MessageCreate,
    MessageRecord,
    OnboardingInput,
    ProfileRecord,
    ProfileUpdate,
    ProgressSummary,
    TodayMeal,
    TodaysPlan,
    WeightCreate,
    WeightEntry,
)
from app.policies import Principal
from app.realtime import broker

logger = logging.getLogger(__name__)

COMPLETED_FROM_PLAN_NOTE = "Completed from meal plan"
FOOD_SEARCH_LIMIT = 50


# ── Internal helpers ──────────────────────────────────────────────────────────


def _uid(principal: Principal) -> int:
    if principal.user_id is None:
        raise AuthError("Not signed in.")
    return principal.user_id


async def _profile_names(
    db: AsyncSession, principal: Principal, user_ids: Iterable[int | None]
) -> dict[int, str | None]:
    """Full names of the given users, limited to profiles the caller can see."""
    ids = {user_id for user_id in user_ids if user_id is not None}
    if not ids:
        return {}
    rows = await Table(db, principal, Profile).select(Profile.id.in_(ids))
    return {row.id: row.full_name for row in rows}


async def _send_quietly(
    send: Callable[[Any], Awaitable[dict[str, Any]]], payload: Any
) -> None:
    try:
        await send(payload)
    except NotificationError:
        logger.warning("%s failed; the change was saved anyway", send.__name__, exc_info=True)


def _short_date(value: date) -> str:
    return f"{value:%b} {value.day}, {value.year}"


# ── Profiles ──────────────────────────────────────────────────────────────────


async def get_profile(db: AsyncSession, principal: Principal) -> ProfileRecord:
    """Return the caller's own profile.

    Raises:
        NotFoundError: If the caller has no profile row.
    """
    profile = await Table(db, principal, Profile).first(Profile.id == _uid(principal))
    if profile is None:
        raise NotFoundError("Profile not found.")
    return ProfileRecord.model_validate(profile)


async def update_profile(
    db: AsyncSession, principal: Principal, update: ProfileUpdate
) -> ProfileRecord:
    """Write the fields set in ``update`` to the caller's profile."""
    values = update.model_dump(exclude_unset=True)
    if not values:
        return await get_profile(db, principal)
    rows = await Table(db, principal, Profile).update(values, Profile.id == _uid(principal))
    if not rows:
        raise NotFoundError("Profile not found.")
    await db.commit()
    return ProfileRecord.model_validate(rows[0])


async def complete_onboarding(
    db: AsyncSession, principal: Principal, data: OnboardingInput, today: date | None = None
) -> ProfileRecord:
    """Store the client's starting metrics and their first weight record.

    Args:
        db: Active async database session.
        principal: The client completing onboarding.
        data: Age, height, current and target weight, optional target date.
        today: Date of the initial weight record (defaults to today).

    Returns:
        The updated profile with ``onboarding_completed`` set.
    """
    user_id = _uid(principal)
    values = data.model_dump()
    values["onboarding_completed"] = True
    rows = await Table(db, principal, Profile).update(values, Profile.id == user_id)
    if not rows:
        raise NotFoundError("Profile not found.")
    await Table(db, principal, WeightRecord).insert(
        user_id=user_id,
        weight_kg=data.current_weight_kg,
        recorded_date=today or date.today(),
        notes="Initial weight",
    )
    await db.commit()
    logger.info("User %s completed onboarding", user_id)
    return ProfileRecord.model_validate(rows[0])


# ── Clients ───────────────────────────────────────────────────────────────────


async def list_clients(db: AsyncSession, principal: Principal) -> list[ClientSummary]:
    """Return every client the caller can see, sorted by name, with emails."""
    roles = await Table(db, principal, UserRole).select(UserRole.role == "client")
    client_ids = [role.user_id for role in roles]
    if not client_ids:
        return []
    profiles = await Table(db, principal, Profile).select(Profile.id.in_(client_ids))
    emails = await auth_service.get_emails(db, [p.id for p in profiles])
    clients = []
    for profile in profiles:
        summary = ClientSummary.model_validate(profile)
        summary.email = emails.get(profile.id, "")
        clients.append(summary)
    return sorted(clients, key=lambda c: ((c.full_name or "").lower(), c.id))


async def get_client(db: AsyncSession, principal: Principal, client_id: int) -> ClientSummary:
    profile = await Table(db, principal, Profile).first(Profile.id == client_id)
    if profile is None:
        raise NotFoundError(f"Client {client_id} not found.")
    summary = ClientSummary.model_validate(profile)
    summary.email = (await auth_service.get_emails(db, [client_id])).get(client_id, "")
    return summary


# ── Appointments ──────────────────────────────────────────────────────────────


def _validate_slot(appointment_date: date, appointment_time: str, today: date) -> None:
    if appointment_time not in logic.TIME_SLOTS:
        raise ValueError(
            f"'{appointment_time}' is not an available time slot. "
            f"Choose one of: {', '.join(logic.TIME_SLOTS)}."
        )
    if not logic.is_bookable_date(appointment_date, today):
        raise ValueError("Appointments can only be booked on weekdays from today onward.")


async def _appointment_records(
    db: AsyncSession, principal: Principal, rows: list[Appointment]
) -> list[AppointmentRecord]:
    names = await _profile_names(db, principal, (row.client_id for row in rows))
    records = []
    for row in rows:
        record = AppointmentRecord.model_validate(row)
        record.client_name = names.get(row.client_id)
        records.append(record)
    return records


async def _notify_appointment_request(
    db: AsyncSession, principal: Principal, appointment: Appointment, client_notes: str | None
) -> None:
    admin_id = await auth_service.first_admin_id(db)
    if admin_id is None:
        logger.warning("No admin account; appointment request email not sent.")
        return
    emails = await auth_service.get_emails(db, [admin_id, appointment.client_id])
    names = await _profile_names(db, principal, [appointment.client_id])
    payload = AppointmentRequestNotification(
        admin_email=emails[admin_id],
        client_name=names.get(appointment.client_id) or "A client",
        client_email=emails[appointment.client_id],
        appointment_date=appointment.appointment_date.isoformat(),
        appointment_time=appointment.appointment_time,
        client_notes=client_notes,
    )
    await _send_quietly(notification_service.send_appointment_request_notification, payload)


async def book_appointment(
    db: AsyncSession, principal: Principal, data: AppointmentCreate, today: date | None = None
) -> AppointmentRecord:
    """Request a consultation. The booking starts as ``pending``.

    Raises:
        ValueError: If the slot is not offered or the date is not bookable.
    """
    _validate_slot(data.appointment_date, data.appointment_time, today or date.today())
    row = await Table(db, principal, Appointment).insert(
        client_id=_uid(principal),
        appointment_date=data.appointment_date,
        appointment_time=data.appointment_time,
        client_notes=data.client_notes or None,
    )
    await db.commit()
    logger.info("Appointment %s requested by user %s", row.id, row.client_id)
    await _notify_appointment_request(db, principal, row, row.client_notes)
    return (await _appointment_records(db, principal, [row]))[0]


async def list_appointments(
    db: AsyncSession, principal: Principal, client_id: int | None = None
) -> list[AppointmentRecord]:
    """Return visible appointments ordered by date and time."""
    criteria = [Appointment.client_id == client_id] if client_id is not None else []
    rows = await Table(db, principal, Appointment).select(
        *criteria,
        order_by=[Appointment.appointment_date, Appointment.appointment_time],
    )
    return await _appointment_records(db, principal, rows)


async def cancel_appointment(
    db: AsyncSession, principal: Principal, appointment_id: int
) -> AppointmentRecord:
    """Cancel one of the caller's open appointments.

    Raises:
        NotFoundError: If the appointment is not visible or no longer open.
    """
    rows = await Table(db, principal, Appointment).update(
        {"status": "cancelled"}, Appointment.id == appointment_id
    )
    if not rows:
        raise NotFoundError(f"Appointment {appointment_id} not found or no longer open.")
    await db.commit()
    return (await _appointment_records(db, principal, rows))[0]


async def reschedule_appointment(
    db: AsyncSession,
    principal: Principal,
    appointment_id: int,
    data: AppointmentReschedule,
    today: date | None = None,
) -> AppointmentRecord:
    """Move an open appointment to a new slot.

    A confirmed appointment goes back to ``pending`` and the nutritionist is
    asked to confirm the new slot.
    """
    _validate_slot(data.appointment_date, data.appointment_time, today or date.today())
    table = Table(db, principal, Appointment)
    current = await table.first(Appointment.id == appointment_id)
    if current is None:
        raise NotFoundError(f"Appointment {appointment_id} not found.")
    old_date, old_time = current.appointment_date, current.appointment_time
    was_confirmed = current.status == "confirmed"

    rows = await table.update(
        {
            "appointment_date": data.appointment_date,
            "appointment_time": data.appointment_time,
            "status": "pending" if was_confirmed else current.status,
        },
        Appointment.id == appointment_id,
    )
    if not rows:
        raise NotFoundError(f"Appointment {appointment_id} not found or no longer open.")
    await db.commit()

    if was_confirmed:
        note = f"Rescheduled from {_short_date(old_date)} at {old_time}"
        await _notify_appointment_request(db, principal, rows[0], note)
    return (await _appointment_records(db, principal, rows))[0]


async def update_appointment(
    db: AsyncSession,
    principal: Principal,
    appointment_id: int,
    update: AppointmentAdminUpdate,
) -> AppointmentRecord:
    """Set status and/or nutritionist notes; confirming emails the client."""
    values = update.model_dump(exclude_unset=True)
    table = Table(db, principal, Appointment)
    current = await table.first(Appointment.id == appointment_id)
    if current is None:
        raise NotFoundError(f"Appointment {appointment_id} not found.")
    previous_status = current.status

    rows = await table.update(values, Appointment.id == appointment_id)
    if not rows:
        raise NotFoundError(f"Appointment {appointment_id} not found.")
    await db.commit()
    row = rows[0]
    record = (await _appointment_records(db, principal, [row]))[0]

    if row.status == "confirmed" and previous_status != "confirmed":
        emails = await auth_service.get_emails(db, [row.client_id])
        if row.client_id in emails:
            payload = AppointmentNotification(
                client_email=emails[row.client_id],
                client_name=record.client_name or "there",
                appointment_date=row.appointment_date.isoformat(),
                appointment_time=row.appointment_time,
                notes=row.notes,
            )
            await _send_quietly(notification_service.send_appointment_notification, payload)
    return record


async def delete_appointment(db: AsyncSession, principal: Principal, appointment_id: int) -> None:
    rows = await Table(db, principal, Appointment).delete(Appointment.id == appointment_id)
    if not rows:
        raise NotFoundError(f"Appointment {appointment_id} not found.")
    await db.commit()


# ── Meal plans ────────────────────────────────────────────────────────────────


async def _write_days(
    db: AsyncSession, principal: Principal, plan_id: int, data: MealPlanInput
) -> None:
    days = data.days or [
        MealPlanDayInput(day_number=n) for n in range(1, data.duration_days + 1)
    ]
    day_table = Table(db, principal, MealPlanDay)
    meal_table = Table(db, principal, MealPlanMeal)
    for day in days:
        day_row = await day_table.insert(
            meal_plan_id=plan_id, day_number=day.day_number, notes=day.notes
        )
        await meal_table.insert_many(
            [{**meal.model_dump(), "meal_plan_day_id": day_row.id} for meal in day.meals]
        )


def _plan_values(data: MealPlanInput) -> dict[str, Any]:
    if not data.title.strip():
        raise ValueError("Meal plan title is required.")
    return {
        "title": data.title.strip(),
        "description": data.description,
        "duration_days": data.duration_days,
        "is_template": data.is_template,
    }


async def list_meal_plans(db: AsyncSession, principal: Principal) -> list[MealPlanSummary]:
    """Return visible meal plans, newest first."""
    rows = await Table(db, principal, MealPlan).select(
        order_by=[MealPlan.created_at.desc(), MealPlan.id.desc()]
    )
    return [MealPlanSummary.model_validate(row) for row in rows]


async def get_meal_plan(db: AsyncSession, principal: Principal, plan_id: int) -> MealPlanDetail:
    """Return a plan with its days (by day number) and their meals.

    Raises:
        NotFoundError: If the plan does not exist or is not visible.
    """
    plan = await Table(db, principal, MealPlan).get(plan_id)
    days = await Table(db, principal, MealPlanDay).select(
        MealPlanDay.meal_plan_id == plan_id, order_by=[MealPlanDay.day_number]
    )
    meals = await Table(db, principal, MealPlanMeal).select(
        MealPlanMeal.meal_plan_day_id.in_([day.id for day in days]),
        order_by=[MealPlanMeal.id],
    )
    meals_by_day: dict[int, list[MealRecord]] = {}
    for meal in meals:
        meals_by_day.setdefault(meal.meal_plan_day_id, []).append(MealRecord.model_validate(meal))

    summary = MealPlanSummary.model_validate(plan)
    return MealPlanDetail(
        **summary.model_dump(),
        days=[
            MealPlanDayRecord(
                id=day.id,
                day_number=day.day_number,
                notes=day.notes,
                meals=meals_by_day.get(day.id, []),
            )
            for day in days
        ],
    )


async def create_meal_plan(
    db: AsyncSession, principal: Principal, data: MealPlanInput
) -> MealPlanDetail:
    """Create a plan with its days and meals in one transaction."""
    plan = await Table(db, principal, MealPlan).insert(
        **_plan_values(data), created_by=_uid(principal)
    )
    await _write_days(db, principal, plan.id, data)
    await db.commit()
    logger.info("Meal plan %s created", plan.id)
    return await get_meal_plan(db, principal, plan.id)


async def update_meal_plan(
    db: AsyncSession, principal: Principal, plan_id: int, data: MealPlanInput
) -> MealPlanDetail:
    """Replace a plan's fields, days and meals in one transaction."""
    rows = await Table(db, principal, MealPlan).update(_plan_values(data), MealPlan.id == plan_id)
    if not rows:
        raise NotFoundError(f"Meal plan {plan_id} not found.")
    # Meals go with their days through ON DELETE CASCADE.
    await Table(db, principal, MealPlanDay).delete(MealPlanDay.meal_plan_id == plan_id)
    await _write_days(db, principal, plan_id, data)
    await db.commit()
    return await get_meal_plan(db, principal, plan_id)


async def delete_meal_plan(db: AsyncSession, principal: Principal, plan_id: int) -> None:
    rows = await Table(db, principal, MealPlan).delete(MealPlan.id == plan_id)
    if not rows:
        raise NotFoundError(f"Meal plan {plan_id} not found.")
    await db.commit()


# ── Assignments ───────────────────────────────────────────────────────────────


async def _assignment_records(
    db: AsyncSession, principal: Principal, rows: list[ClientMealPlan]
) -> list[AssignmentRecord]:
    plan_ids = {row.meal_plan_id for row in rows}
    plans = {
        plan.id: plan
        for plan in await Table(db, principal, MealPlan).select(MealPlan.id.in_(plan_ids))
    }
    names = await _profile_names(db, principal, (row.client_id for row in rows))
    records = []
    for row in rows:
        record = AssignmentRecord.model_validate(row)
        record.client_name = names.get(row.client_id)
        plan = plans.get(row.meal_plan_id)
        if plan is not None:
            record.meal_plan_title = plan.title
            record.meal_plan_description = plan.description
            record.duration_days = plan.duration_days
        records.append(record)
    return records


async def assign_meal_plan(
    db: AsyncSession, principal: Principal, data: AssignmentCreate
) -> AssignmentRecord:
    """Assign a plan to a client as ``active`` and email the client.

    Raises:
        NotFoundError: If the plan is not visible to the caller.
        ValueError: If the end date precedes the start date.
    """
    plan = await Table(db, principal, MealPlan).get(data.meal_plan_id)
    if data.end_date is not None and data.end_date < data.start_date:
        raise ValueError("End date cannot be before the start date.")
    row = await Table(db, principal, ClientMealPlan).insert(
        client_id=data.client_id,
        meal_plan_id=plan.id,
        assigned_by=_uid(principal),
        start_date=data.start_date,
        end_date=data.end_date,
        notes=data.notes or None,
    )
    await db.commit()
    logger.info("Meal plan %s assigned to client %s", plan.id, data.client_id)
    record = (await _assignment_records(db, principal, [row]))[0]

    emails = await auth_service.get_emails(db, [data.client_id])
    if data.client_id in emails:
        payload = MealPlanNotification(
            client_email=emails[data.client_id],
            client_name=record.client_name or "there",
            meal_plan_title=plan.title,
            start_date=data.start_date.isoformat(),
            end_date=data.end_date.isoformat() if data.end_date else None,
            notes=data.notes or None,
        )
        await _send_quietly(notification_service.send_meal_plan_notification, payload)
    return record


async def list_assignments(
    db: AsyncSession, principal: Principal, client_id: int | None = None
) -> list[AssignmentRecord]:
    """Return visible assignments, newest first, with plan titles and names."""
    criteria = [ClientMealPlan.client_id == client_id] if client_id is not None else []
    rows = await Table(db, principal, ClientMealPlan).select(
        *criteria, order_by=[ClientMealPlan.created_at.desc(), ClientMealPlan.id.desc()]
    )
    return await _assignment_records(db, principal, rows)


async def update_assignment(
    db: AsyncSession, principal: Principal, assignment_id: int, update: AssignmentUpdate
) -> AssignmentRecord:
    values = update.model_dump(exclude_unset=True)
    rows = await Table(db, principal, ClientMealPlan).update(
        values, ClientMealPlan.id == assignment_id
    )
    if not rows:
        raise NotFoundError(f"Assignment {assignment_id} not found.")
    await db.commit()
    return (await _assignment_records(db, principal, rows))[0]


async def delete_assignment(db: AsyncSession, principal: Principal, assignment_id: int) -> None:
    rows = await Table(db, principal, ClientMealPlan).delete(ClientMealPlan.id == assignment_id)
    if not rows:
        raise NotFoundError(f"Assignment {assignment_id} not found.")
    await db.commit()


async def get_todays_plan(
    db: AsyncSession, principal: Principal, today: date | None = None
) -> TodaysPlan | None:
    """Return today's meals from the caller's active assignment.

    Picks the most recently started active assignment whose plan covers
    today. Returns ``None`` when there is none.
    """
    today = today or date.today()
    user_id = _uid(principal)
    assignments = await Table(db, principal, ClientMealPlan).select(
        ClientMealPlan.client_id == user_id,
        ClientMealPlan.status == "active",
        order_by=[ClientMealPlan.start_date.desc(), ClientMealPlan.id.desc()],
    )
    plans = Table(db, principal, MealPlan)
    for assignment in assignments:
        plan = await plans.first(MealPlan.id == assignment.meal_plan_id)
        if plan is None:
            continue
        day_number = logic.plan_day_number(assignment.start_date, today)
        if 1 <= day_number <= plan.duration_days:
            break
    else:
        return None

    day = await Table(db, principal, MealPlanDay).first(
        MealPlanDay.meal_plan_id == plan.id, MealPlanDay.day_number == day_number
    )
    meals = []
    if day is not None:
        meals = await Table(db, principal, MealPlanMeal).select(
            MealPlanMeal.meal_plan_day_id == day.id, order_by=[MealPlanMeal.id]
        )
    logs = await Table(db, principal, MealLog).select(
        MealLog.user_id == user_id, MealLog.logged_date == today
    )
    done = {logic.completion_key(log.logged_date, log.meal_type, log.meal_name) for log in logs}

    today_meals = []
    for meal in meals:
        item = TodayMeal.model_validate(meal)
        item.completed = logic.completion_key(today, meal.meal_type, meal.meal_name) in done
        today_meals.append(item)

    return TodaysPlan(
        assignment_id=assignment.id,
        meal_plan_id=plan.id,
        meal_plan_title=plan.title,
        day_number=day_number,
        duration_days=plan.duration_days,
        plan_date=today,
        day_notes=day.notes if day else None,
        meals=today_meals,
    )


async def get_completions(
    db: AsyncSession, principal: Principal, assignment_id: int
) -> list[str]:
    """Completion keys of every plan meal logged during an assignment."""
    assignment = await Table(db, principal, ClientMealPlan).get(assignment_id)
    plan = await Table(db, principal, MealPlan).get(assignment.meal_plan_id)
    last_day = logic.meal_date(assignment.start_date, plan.duration_days)
    logs = await Table(db, principal, MealLog).select(
        MealLog.user_id == assignment.client_id,
        MealLog.logged_date >= assignment.start_date,
        MealLog.logged_date <= last_day,
    )
    return sorted(
        {logic.completion_key(log.logged_date, log.meal_type, log.meal_name) for log in logs}
    )


async def toggle_meal_completion(
    db: AsyncSession, principal: Principal, assignment_id: int, toggle: MealCompletionToggle
) -> MealCompletionResult:
    """Mark a plan meal eaten, or unmark it if it already is.

    The meal is logged on the calendar date of its plan day. Marking inserts
    a meal log with the meal's nutrition; unmarking deletes the logs that
    match (date, meal type, meal name).

    Raises:
        NotFoundError: If the assignment or meal is not visible.
        ValueError: If the meal belongs to a different plan.
    """
    assignment = await Table(db, principal, ClientMealPlan).get(assignment_id)
    meal = await Table(db, principal, MealPlanMeal).get(toggle.meal_id)
    day = await Table(db, principal, MealPlanDay).get(meal.meal_plan_day_id)
    if day.meal_plan_id != assignment.meal_plan_id:
        raise ValueError("This meal is not part of the assigned plan.")

    logged_date = logic.meal_date(assignment.start_date, day.day_number)
    logs = Table(db, principal, MealLog)
    existing = await logs.select(
        MealLog.user_id == assignment.client_id,
        MealLog.logged_date == logged_date,
        MealLog.meal_type == meal.meal_type,
        MealLog.meal_name == meal.meal_name,
    )
    if existing:
        await logs.delete(MealLog.id.in_([log.id for log in existing]))
        await db.commit()
        return MealCompletionResult(completed=False)

    log = await logs.insert(
        user_id=assignment.client_id,
        meal_name=meal.meal_name,
        meal_type=meal.meal_type,
        calories=meal.calories,
        protein_grams=meal.protein_grams,
        carbs_grams=meal.carbs_grams,
        fat_grams=meal.fat_grams,
        logged_date=logged_date,
        logged_time=datetime.now().time().replace(microsecond=0),
        notes=COMPLETED_FROM_PLAN_NOTE,
    )
    await db.commit()
    return MealCompletionResult(completed=True, meal_log_id=log.id)


# ── Meal logs & foods ─────────────────────────────────────────────────────────


async def log_meal(db: AsyncSession, principal: Principal, data: MealLogCreate) -> MealLogRecord:
    """Log a meal for the caller. Date and time default to now."""
    if not data.meal_name.strip():
        raise ValueError("Meal name is required.")
    values = data.model_dump(exclude_none=True)
    values["meal_name"] = data.meal_name.strip()
    row = await Table(db, principal, MealLog).insert(user_id=_uid(principal), **values)
    await db.commit()
    return MealLogRecord.model_validate(row)


async def list_meal_logs(
    db: AsyncSession,
    principal: Principal,
    logged_date: date | None = None,
    user_id: int | None = None,
) -> DailyMealLog:
    """Return one day's meal logs (newest first) with nutrition totals."""
    logged_date = logged_date or date.today()
    rows = await Table(db, principal, MealLog).select(
        MealLog.user_id == (user_id or _uid(principal)),
        MealLog.logged_date == logged_date,
        order_by=[MealLog.logged_time.desc(), MealLog.id.desc()],
    )
    return DailyMealLog(
        logged_date=logged_date,
        logs=[MealLogRecord.model_validate(row) for row in rows],
        totals=logic.daily_totals(rows),
    )


async def meal_history(
    db: AsyncSession,
    principal: Principal,
    start: date,
    end: date,
    user_id: int | None = None,
) -> list[DailyMealLog]:
    """Return logs between ``start`` and ``end`` grouped by day, newest day first."""
    if end < start:
        raise ValueError("End date cannot be before the start date.")
    rows = await Table(db, principal, MealLog).select(
        MealLog.user_id == (user_id or _uid(principal)),
        MealLog.logged_date >= start,
        MealLog.logged_date <= end,
        order_by=[MealLog.logged_date.desc(), MealLog.logged_time.desc(), MealLog.id.desc()],
    )
    by_day: dict[date, list[MealLog]] = {}
    for row in rows:
        by_day.setdefault(row.logged_date, []).append(row)
    return [
        DailyMealLog(
            logged_date=day,
            logs=[MealLogRecord.model_validate(row) for row in day_rows],
            totals=logic.daily_totals(day_rows),
        )
        for day, day_rows in by_day.items()
    ]


async def update_meal_log(
    db: AsyncSession, principal: Principal, log_id: int, update: MealLogUpdate
) -> MealLogRecord:
    values = update.model_dump(exclude_unset=True)
    rows = await Table(db, principal, MealLog).update(values, MealLog.id == log_id)
    if not rows:
        raise NotFoundError(f"Meal log {log_id} not found.")
    await db.commit()
    return MealLogRecord.model_validate(rows[0])


async def delete_meal_log(db: AsyncSession, principal: Principal, log_id: int) -> None:
    rows = await Table(db, principal, MealLog).delete(MealLog.id == log_id)
    if not rows:
        raise NotFoundError(f"Meal log {log_id} not found.")
    await db.commit()


def _food_record(row: Food) -> FoodRecord:
    record = FoodRecord.model_validate(row)
    record.serving = logic.serving_values(row)
    return record


async def search_foods(
    db: AsyncSession, principal: Principal, query: str = ""
) -> list[FoodRecord]:
    """Case-insensitive substring search over food names (at most 50)."""
    criteria = [Food.food_name.ilike(f"%{query.strip()}%")] if query.strip() else []
    rows = await Table(db, principal, Food).select(
        *criteria, order_by=[Food.food_name], limit=FOOD_SEARCH_LIMIT
    )
    return [_food_record(row) for row in rows]


async def add_food(db: AsyncSession, principal: Principal, data: FoodCreate) -> FoodRecord:
    row = await Table(db, principal, Food).insert(**data.model_dump())
    await db.commit()
    return _food_record(row)


# ── Weight & progress ─────────────────────────────────────────────────────────


async def add_weight(
    db: AsyncSession, principal: Principal, data: WeightCreate, today: date | None = None
) -> WeightEntry:
    """Record a weight for the caller.

    Raises:
        ValueError: If the record is dated in the future.
    """
    today = today or date.today()
    recorded_date = data.recorded_date or today
    if recorded_date > today:
        raise ValueError("Weight records cannot be dated in the future.")
    row = await Table(db, principal, WeightRecord).insert(
        user_id=_uid(principal),
        weight_kg=data.weight_kg,
        recorded_date=recorded_date,
        notes=data.notes or None,
    )
    await db.commit()
    return WeightEntry.model_validate(row)


async def list_weights(
    db: AsyncSession, principal: Principal, user_id: int | None = None
) -> list[WeightEntry]:
    """Return a user's weight history, oldest first."""
    rows = await Table(db, principal, WeightRecord).select(
        WeightRecord.user_id == (user_id or _uid(principal)),
        order_by=[WeightRecord.recorded_date, WeightRecord.id],
    )
    return [WeightEntry.model_validate(row) for row in rows]


async def progress_summary(
    db: AsyncSession,
    principal: Principal,
    user_id: int | None = None,
    today: date | None = None,
) -> ProgressSummary:
    """Compute trend, goal timeline and achievements for one user.

    The onboarding weight stored on the profile is the start weight; the
    first history record stands in when it is missing.

    Raises:
        NotFoundError: If the user's profile is not visible to the caller.
    """
    today = today or date.today()
    user_id = user_id or _uid(principal)
    profile = await Table(db, principal, Profile).first(Profile.id == user_id)
    if profile is None:
        raise NotFoundError(f"Profile {user_id} not found.")
    history = await list_weights(db, principal, user_id)

    start_weight = profile.current_weight_kg or (history[0].weight_kg if history else None)
    target_weight = profile.target_weight_kg
    achievements = logic.evaluate_achievements(history, start_weight, target_weight, today)
    return ProgressSummary(
        user_id=user_id,
        history=history,
        trend=logic.weight_trend(history, target_weight, today),
        timeline=logic.goal_timeline(
            history, start_weight, target_weight, profile.target_date, today
        ),
        achievements=achievements,
        streak=logic.logging_streak((entry.recorded_date for entry in history), today),
        unlocked_count=sum(1 for a in achievements if a.unlocked),
    )


# ── Messages ──────────────────────────────────────────────────────────────────


async def _message_records(
    db: AsyncSession, principal: Principal, rows: list[Message]
) -> list[MessageRecord]:
    names = await _profile_names(
        db, principal, [row.sender_id for row in rows] + [row.recipient_id for row in rows]
    )
    records = []
    for row in rows:
        record = MessageRecord.model_validate(row)
        record.sender_name = names.get(row.sender_id)
        record.recipient_name = names.get(row.recipient_id)
        records.append(record)
    return records


async def send_message(
    db: AsyncSession, principal: Principal, data: MessageCreate
) -> MessageRecord:
    """Send a message and push it to connected sockets of both parties.

    Clients always write to the nutritionist; the nutritionist must name
    the recipient client.
    """
    sender_id = _uid(principal)
    if principal.has_role("admin"):
        if data.recipient_id is None:
            raise ValueError("Choose a client to message.")
        recipient_id = data.recipient_id
    else:
        admin_id = await auth_service.first_admin_id(db)
        if admin_id is None:
            raise NotFoundError("No nutritionist is available to receive messages.")
        recipient_id = admin_id

    row = await Table(db, principal, Message).insert(
        sender_id=sender_id,
        recipient_id=recipient_id,
        subject=data.subject or None,
        message=data.message,
    )
    await db.commit()
    record = (await _message_records(db, principal, [row]))[0]
    broker.publish(
        {"type": "message", "message": record.model_dump(mode="json")},
        sender_id,
        recipient_id,
    )
    return record


async def list_messages(
    db: AsyncSession, principal: Principal, client_id: int | None = None
) -> list[MessageRecord]:
    """Return the caller's visible messages, oldest first.

    ``client_id`` narrows the list to one conversation (admin view).
    """
    criteria = []
    if client_id is not None:
        criteria.append(or_(Message.sender_id == client_id, Message.recipient_id == client_id))
    rows = await Table(db, principal, Message).select(
        *criteria, order_by=[Message.created_at, Message.id]
    )
    return await _message_records(db, principal, rows)


async def mark_messages_read(
    db: AsyncSession, principal: Principal, request: MarkReadRequest
) -> int:
    """Mark received messages read; returns how many changed."""
    criteria = [Message.recipient_id == _uid(principal), Message.read.is_(False)]
    if request.message_ids is not None:
        criteria.append(Message.id.in_(request.message_ids))
    if request.sender_id is not None:
        criteria.append(Message.sender_id == request.sender_id)
    rows = await Table(db, principal, Message).update({"read": True}, *criteria)
    await db.commit()
    return len(rows)


async def unread_count(db: AsyncSession, principal: Principal) -> int:
    return await Table(db, principal, Message).count(
        Message.recipient_id == _uid(principal), Message.read.is_(False)
    )


# ── Dashboard ─────────────────────────────────────────────────────────────────


async def dashboard_stats(db: AsyncSession, principal: Principal) -> DashboardStats:
    """Headline counts, limited to what the caller can see."""
    return DashboardStats(
        total_clients=await Table(db, principal, UserRole).count(UserRole.role == "client"),
        pending_appointments=await Table(db, principal, Appointment).count(
            Appointment.status == "pending"
        ),
        active_meal_plans=await Table(db, principal, ClientMealPlan).count(
            ClientMealPlan.status == "active"
        ),
        unread_messages=await unread_count(db, principal),
    )
