"""FastAPI application entry point.

Defines the REST API, the real-time message socket and the notification
functions. Handlers are thin: authorization is decided by the row-level
policies applied in ``gateway.py``, and all workflow lives in
``db_service.py``, ``auth_service.py`` and ``notification_service.py``.

Service exceptions map to HTTP statuses in one place (see the exception
handlers below).

Run with:
    uvicorn app.main:app --reload --port 8000
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncGenerator, Optional

from fastapi import Depends, FastAPI, Header, Request, WebSocket, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app import auth_service, db_service, logic, notification_service, seed_data
from app.config import settings
from app.database import AsyncSessionLocal, create_tables, get_db
from app.errors import AuthError, NotFoundError, NotificationError, RowLevelSecurityError
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
    LoginRequest,
    MarkReadRequest,
    MealCompletionResult,
    MealCompletionToggle,
    MealLogCreate,
    MealLogRecord,
    MealLogUpdate,
    MealPlanDetail,
    MealPlanInput,
    MealPlanNotification,
    MealPlanSummary,
    MessageCreate,
    MessageRecord,
    OnboardingInput,
    ProfileRecord,
    ProfileUpdate,
    ProgressSummary,
    SessionResponse,
    SignupRequest,
    TodaysPlan,
    UnreadCount,
    UserInfo,
    WeightCreate,
    WeightEntry,
)
from app.policies import Principal
from app.realtime import broker

# Import ORM models so Base.metadata is populated before create_tables() runs.
import app.db_models  # noqa: F401

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: create tables, bootstrap the admin, seed foods."""
    await create_tables()
    async with AsyncSessionLocal() as db:
        await seed_data.run_seed_if_needed(db)
    yield


app = FastAPI(
    title="Nutrition Coaching API",
    description=(
        "Client and nutritionist portal backend. "
        "Tables are guarded by row-level policies; "
        "bookings and plan assignments trigger email notifications."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error mapping ─────────────────────────────────────────────────────────────


@app.exception_handler(ValueError)
async def _invalid_input(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(RowLevelSecurityError)
async def _policy_violation(request: Request, exc: RowLevelSecurityError) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(AuthError)
async def _unauthorized(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": str(exc)},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(IntegrityError)
async def _constraint_violation(request: Request, exc: IntegrityError) -> JSONResponse:
    """Unique violations are conflicts; check and foreign-key violations are bad input."""
    message = str(exc.orig)
    if "unique" in message.lower() or "duplicate" in message.lower():
        return JSONResponse(status_code=409, content={"detail": f"Already exists: {message}"})
    return JSONResponse(status_code=422, content={"detail": f"Constraint violated: {message}"})


# ── Dependencies ──────────────────────────────────────────────────────────────


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Malformed Authorization header.")
    return token.strip()


async def get_principal(
    token: Optional[str] = Depends(bearer_token), db: AsyncSession = Depends(get_db)
) -> Principal:
    return await auth_service.resolve_principal(db, token)


async def require_user(principal: Principal = Depends(get_principal)) -> Principal:
    """Like ``get_principal`` but rejects anonymous callers with 401."""
    if not principal.is_authenticated:
        raise AuthError("Not signed in.")
    return principal


# ── System ────────────────────────────────────────────────────────────────────


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Confirm the API is running."""
    return {"status": "ok"}


# ── Auth ──────────────────────────────────────────────────────────────────────


@app.post("/auth/signup", response_model=SessionResponse, tags=["auth"])
async def signup(request: SignupRequest, db: AsyncSession = Depends(get_db)) -> SessionResponse:
    """Register a client account and return a session.

    HTTP 422 for a malformed email or a password under 6 characters,
    HTTP 409 if the email is already registered.
    """
    return await auth_service.signup(db, request.email, request.password, request.full_name)


@app.post("/auth/login", response_model=SessionResponse, tags=["auth"])
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)) -> SessionResponse:
    """Exchange email and password for a bearer token. HTTP 401 on failure."""
    return await auth_service.login(db, request.email, request.password)


@app.post("/auth/logout", tags=["auth"])
async def logout(
    token: Optional[str] = Depends(bearer_token), db: AsyncSession = Depends(get_db)
) -> dict[str, bool]:
    if token:
        await auth_service.logout(db, token)
    return {"signed_out": True}


@app.get("/auth/me", response_model=UserInfo, tags=["auth"])
async def me(
    principal: Principal = Depends(require_user), db: AsyncSession = Depends(get_db)
) -> UserInfo:
    return await auth_service.get_user_info(db, principal)


# ── Profile ───────────────────────────────────────────────────────────────────


@app.get("/profile", response_model=ProfileRecord, tags=["profile"])
async def get_profile(
    principal: Principal = Depends(require_user), db: AsyncSession = Depends(get_db)
) -> ProfileRecord:
    return await db_service.get_profile(db, principal)


@app.patch("/profile", response_model=ProfileRecord, tags=["profile"])
async def update_profile(
    update: ProfileUpdate,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> ProfileRecord:
    """Update the caller's own profile. Only fields present in the body change."""
    return await db_service.update_profile(db, principal, update)


@app.post("/profile/onboarding", response_model=ProfileRecord, tags=["profile"])
async def complete_onboarding(
    data: OnboardingInput,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> ProfileRecord:
    """Store starting metrics and record the initial weight."""
    return await db_service.complete_onboarding(db, principal, data)


# ── Clients ───────────────────────────────────────────────────────────────────


@app.get("/clients", response_model=list[ClientSummary], tags=["clients"])
async def list_clients(
    principal: Principal = Depends(require_user), db: AsyncSession = Depends(get_db)
) -> list[ClientSummary]:
    """All clients for the nutritionist; a client only sees themself."""
    return await db_service.list_clients(db, principal)


@app.get("/clients/{client_id}", response_model=ClientSummary, tags=["clients"])
async def get_client(
    client_id: int,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> ClientSummary:
    return await db_service.get_client(db, principal, client_id)


# ── Appointments ──────────────────────────────────────────────────────────────


@app.get("/appointments/slots", tags=["appointments"])
async def list_time_slots() -> list[str]:
    """Bookable consultation start times."""
    return list(logic.TIME_SLOTS)


@app.get("/appointments", response_model=list[AppointmentRecord], tags=["appointments"])
async def list_appointments(
    client_id: Optional[int] = None,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> list[AppointmentRecord]:
    """Visible appointments by date and time: own for clients, all for the nutritionist."""
    return await db_service.list_appointments(db, principal, client_id)


@app.post("/appointments", response_model=AppointmentRecord, tags=["appointments"])
async def book_appointment(
    data: AppointmentCreate,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> AppointmentRecord:
    """Request a consultation; the nutritionist is emailed."""
    return await db_service.book_appointment(db, principal, data)


@app.post(
    "/appointments/{appointment_id}/cancel",
    response_model=AppointmentRecord,
    tags=["appointments"],
)
async def cancel_appointment(
    appointment_id: int,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> AppointmentRecord:
    """Cancel an open appointment. HTTP 404 once it is cancelled or completed."""
    return await db_service.cancel_appointment(db, principal, appointment_id)


@app.post(
    "/appointments/{appointment_id}/reschedule",
    response_model=AppointmentRecord,
    tags=["appointments"],
)
async def reschedule_appointment(
    appointment_id: int,
    data: AppointmentReschedule,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> AppointmentRecord:
    return await db_service.reschedule_appointment(db, principal, appointment_id, data)


@app.patch(
    "/appointments/{appointment_id}",
    response_model=AppointmentRecord,
    tags=["appointments"],
)
async def update_appointment(
    appointment_id: int,
    update: AppointmentAdminUpdate,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> AppointmentRecord:
    """Set status and notes. Confirming emails the client."""
    return await db_service.update_appointment(db, principal, appointment_id, update)


@app.delete("/appointments/{appointment_id}", tags=["appointments"])
async def delete_appointment(
    appointment_id: int,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, bool]:
    await db_service.delete_appointment(db, principal, appointment_id)
    return {"deleted": True}


# ── Meal plans ────────────────────────────────────────────────────────────────


@app.get("/meal-plans", response_model=list[MealPlanSummary], tags=["meal plans"])
async def list_meal_plans(
    principal: Principal = Depends(require_user), db: AsyncSession = Depends(get_db)
) -> list[MealPlanSummary]:
    return await db_service.list_meal_plans(db, principal)


@app.post("/meal-plans", response_model=MealPlanDetail, tags=["meal plans"])
async def create_meal_plan(
    data: MealPlanInput,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> MealPlanDetail:
    """Create a plan. Without ``days``, one empty day per ``duration_days`` is added."""
    return await db_service.create_meal_plan(db, principal, data)


@app.get("/meal-plans/{plan_id}", response_model=MealPlanDetail, tags=["meal plans"])
async def get_meal_plan(
    plan_id: int,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> MealPlanDetail:
    """A plan with days and meals. Clients only see actively assigned plans."""
    return await db_service.get_meal_plan(db, principal, plan_id)


@app.put("/meal-plans/{plan_id}", response_model=MealPlanDetail, tags=["meal plans"])
async def update_meal_plan(
    plan_id: int,
    data: MealPlanInput,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> MealPlanDetail:
    """Replace a plan's content, days and meals included."""
    return await db_service.update_meal_plan(db, principal, plan_id, data)


@app.delete("/meal-plans/{plan_id}", tags=["meal plans"])
async def delete_meal_plan(
    plan_id: int,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, bool]:
    await db_service.delete_meal_plan(db, principal, plan_id)
    return {"deleted": True}


# ── Assignments ───────────────────────────────────────────────────────────────


@app.get("/assignments", response_model=list[AssignmentRecord], tags=["meal plans"])
async def list_assignments(
    client_id: Optional[int] = None,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> list[AssignmentRecord]:
    return await db_service.list_assignments(db, principal, client_id)


@app.post("/assignments", response_model=AssignmentRecord, tags=["meal plans"])
async def assign_meal_plan(
    data: AssignmentCreate,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> AssignmentRecord:
    """Assign a plan to a client; the client is emailed."""
    return await db_service.assign_meal_plan(db, principal, data)


@app.patch(
    "/assignments/{assignment_id}", response_model=AssignmentRecord, tags=["meal plans"]
)
async def update_assignment(
    assignment_id: int,
    update: AssignmentUpdate,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> AssignmentRecord:
    return await db_service.update_assignment(db, principal, assignment_id, update)


@app.delete("/assignments/{assignment_id}", tags=["meal plans"])
async def delete_assignment(
    assignment_id: int,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, bool]:
    await db_service.delete_assignment(db, principal, assignment_id)
    return {"deleted": True}


@app.get("/assignments/{assignment_id}/completions", tags=["meal plans"])
async def list_completions(
    assignment_id: int,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> list[str]:
    """Keys (``<date>_<meal type>_<meal name>``) of plan meals already logged."""
    return await db_service.get_completions(db, principal, assignment_id)


@app.post(
    "/assignments/{assignment_id}/completions",
    response_model=MealCompletionResult,
    tags=["meal plans"],
)
async def toggle_completion(
    assignment_id: int,
    toggle: MealCompletionToggle,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> MealCompletionResult:
    """Mark a plan meal eaten (adds a meal log) or unmark it (removes it)."""
    return await db_service.toggle_meal_completion(db, principal, assignment_id, toggle)


@app.get("/my/meal-plans", response_model=list[AssignmentRecord], tags=["meal plans"])
async def my_meal_plans(
    principal: Principal = Depends(require_user), db: AsyncSession = Depends(get_db)
) -> list[AssignmentRecord]:
    return await db_service.list_assignments(db, principal, principal.user_id)


@app.get("/my/meal-plans/today", response_model=Optional[TodaysPlan], tags=["meal plans"])
async def todays_plan(
    principal: Principal = Depends(require_user), db: AsyncSession = Depends(get_db)
) -> Optional[TodaysPlan]:
    """Today's meals from the active plan, or ``null`` when nothing is scheduled."""
    return await db_service.get_todays_plan(db, principal)


# ── Meal logs & foods ─────────────────────────────────────────────────────────


@app.get("/meal-logs", response_model=DailyMealLog, tags=["meal logs"])
async def list_meal_logs(
    logged_date: Optional[date] = None,
    user_id: Optional[int] = None,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> DailyMealLog:
    """One day's logs (default today) with totals."""
    return await db_service.list_meal_logs(db, principal, logged_date, user_id)


@app.get("/meal-logs/history", response_model=list[DailyMealLog], tags=["meal logs"])
async def meal_history(
    start: date,
    end: date,
    user_id: Optional[int] = None,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> list[DailyMealLog]:
    return await db_service.meal_history(db, principal, start, end, user_id)


@app.post("/meal-logs", response_model=MealLogRecord, tags=["meal logs"])
async def log_meal(
    data: MealLogCreate,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> MealLogRecord:
    return await db_service.log_meal(db, principal, data)


@app.patch("/meal-logs/{log_id}", response_model=MealLogRecord, tags=["meal logs"])
async def update_meal_log(
    log_id: int,
    update: MealLogUpdate,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> MealLogRecord:
    return await db_service.update_meal_log(db, principal, log_id, update)


@app.delete("/meal-logs/{log_id}", tags=["meal logs"])
async def delete_meal_log(
    log_id: int,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, bool]:
    await db_service.delete_meal_log(db, principal, log_id)
    return {"deleted": True}


@app.get("/foods", response_model=list[FoodRecord], tags=["meal logs"])
async def search_foods(
    q: str = "",
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> list[FoodRecord]:
    """Case-insensitive name search over the food reference table (max 50)."""
    return await db_service.search_foods(db, principal, q)


@app.post("/foods", response_model=FoodRecord, tags=["meal logs"])
async def add_food(
    data: FoodCreate,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> FoodRecord:
    return await db_service.add_food(db, principal, data)


# ── Weight & progress ─────────────────────────────────────────────────────────


@app.get("/progress/weights", response_model=list[WeightEntry], tags=["progress"])
async def list_weights(
    user_id: Optional[int] = None,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> list[WeightEntry]:
    return await db_service.list_weights(db, principal, user_id)


@app.post("/progress/weights", response_model=WeightEntry, tags=["progress"])
async def add_weight(
    data: WeightCreate,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> WeightEntry:
    """Record a weight. HTTP 422 for non-positive values or future dates."""
    return await db_service.add_weight(db, principal, data)


@app.get("/progress/summary", response_model=ProgressSummary, tags=["progress"])
async def progress_summary(
    user_id: Optional[int] = None,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> ProgressSummary:
    """Weight trend, goal timeline, streak and achievements."""
    return await db_service.progress_summary(db, principal, user_id)


# ── Messages ──────────────────────────────────────────────────────────────────


@app.get("/messages", response_model=list[MessageRecord], tags=["messages"])
async def list_messages(
    client_id: Optional[int] = None,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> list[MessageRecord]:
    return await db_service.list_messages(db, principal, client_id)


@app.post("/messages", response_model=MessageRecord, tags=["messages"])
async def send_message(
    data: MessageCreate,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> MessageRecord:
    """Send a message; it is also pushed to both parties' open sockets."""
    return await db_service.send_message(db, principal, data)


@app.post("/messages/read", tags=["messages"])
async def mark_messages_read(
    request: MarkReadRequest,
    principal: Principal = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, int]:
    return {"updated": await db_service.mark_messages_read(db, principal, request)}


@app.get("/messages/unread-count", response_model=UnreadCount, tags=["messages"])
async def unread_count(
    principal: Principal = Depends(require_user), db: AsyncSession = Depends(get_db)
) -> UnreadCount:
    return UnreadCount(count=await db_service.unread_count(db, principal))


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@app.websocket("/realtime/messages")
async def realtime_messages(websocket: WebSocket, token: Optional[str] = None) -> None:
    """Push every new message involving the caller as JSON.

    Authenticate with ``?token=<access token>``; the socket is closed with
    code 1008 otherwise.
    """
    async with AsyncSessionLocal() as db:
        try:
            principal = await auth_service.resolve_principal(db, token)
        except AuthError:
            principal = None
    if principal is None or principal.user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id = principal.user_id
    queue = broker.subscribe(user_id)
    await websocket.accept()
    disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        while True:
            next_event = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait(
                {next_event, disconnected}, return_when=asyncio.FIRST_COMPLETED
            )
            if disconnected in done:
                next_event.cancel()
                break
            await websocket.send_json(next_event.result())
    finally:
        disconnected.cancel()
        broker.unsubscribe(user_id, queue)


# ── Dashboard ─────────────────────────────────────────────────────────────────


@app.get("/dashboard/stats", response_model=DashboardStats, tags=["dashboard"])
async def dashboard_stats(
    principal: Principal = Depends(require_user), db: AsyncSession = Depends(get_db)
) -> DashboardStats:
    return await db_service.dashboard_stats(db, principal)


# ── Notification functions ────────────────────────────────────────────────────


async def _run_function(send: Any, payload: Any) -> JSONResponse:
    try:
        result = await send(payload)
    except NotificationError as exc:
        logger.error("%s failed: %s", send.__name__, exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})
    return JSONResponse(status_code=200, content=result)


@app.post("/functions/v1/send-appointment-notification", tags=["functions"])
async def send_appointment_notification(
    payload: AppointmentNotification, principal: Principal = Depends(require_user)
) -> JSONResponse:
    """Email a client that their appointment is confirmed."""
    return await _run_function(notification_service.send_appointment_notification, payload)


@app.post("/functions/v1/send-appointment-request-notification", tags=["functions"])
async def send_appointment_request_notification(
    payload: AppointmentRequestNotification, principal: Principal = Depends(require_user)
) -> JSONResponse:
    """Email the nutritionist about a new or rescheduled appointment request."""
    return await _run_function(
        notification_service.send_appointment_request_notification, payload
    )


@app.post("/functions/v1/send-meal-plan-notification", tags=["functions"])
async def send_meal_plan_notification(
    payload: MealPlanNotification, principal: Principal = Depends(require_user)
) -> JSONResponse:
    """Email a client that a meal plan was assigned."""
    return await _run_function(notification_service.send_meal_plan_notification, payload)
