from datetime import date, datetime, time
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    """Base for response models built from ORM rows."""

    model_config = ConfigDict(from_attributes=True)


# ── Auth ──────────────────────────────────────────────────────────────────────


class SignupRequest(BaseModel):
    """Credentials and display name submitted to /auth/signup."""

    email: EmailStr
    password: str
    full_name: str = ""


class LoginRequest(BaseModel):
    """Credentials submitted to /auth/login."""

    email: EmailStr
    password: str


class UserInfo(BaseModel):
    """The signed-in user as returned by /auth/me and at login."""

    id: int
    email: str
    roles: list[str] = []
    full_name: Optional[str] = None
    onboarding_completed: bool = False

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


class SessionResponse(BaseModel):
    """A bearer token and the user it belongs to."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserInfo


# ── Profiles ──────────────────────────────────────────────────────────────────


class ProfileRecord(_Record):
    """A user's profile row."""

    id: int
    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    dietary_goals: Optional[str] = None
    bio: Optional[str] = None
    credentials: Optional[str] = None
    age: Optional[int] = None
    height_cm: Optional[float] = None
    current_weight_kg: Optional[float] = None
    target_weight_kg: Optional[float] = None
    target_date: Optional[date] = None
    onboarding_completed: bool = False
    created_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    """Partial profile update. Only fields that are set are written."""

    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    dietary_goals: Optional[str] = None
    bio: Optional[str] = None
    credentials: Optional[str] = None
    age: Optional[int] = None
    height_cm: Optional[float] = None
    current_weight_kg: Optional[float] = None
    target_weight_kg: Optional[float] = None
    target_date: Optional[date] = None


class OnboardingInput(BaseModel):
    """Health metrics collected on a client's first visit."""

    age: int
    height_cm: float
    current_weight_kg: float
    target_weight_kg: float
    target_date: Optional[date] = None


class ClientSummary(_Record):
    """A client as listed in the admin portal."""

    id: int
    email: str = ""
    full_name: Optional[str] = None
    phone: Optional[str] = None
    dietary_goals: Optional[str] = None
    age: Optional[int] = None
    height_cm: Optional[float] = None
    current_weight_kg: Optional[float] = None
    target_weight_kg: Optional[float] = None
    target_date: Optional[date] = None
    onboarding_completed: bool = False
    created_at: Optional[datetime] = None


# ── Appointments ──────────────────────────────────────────────────────────────


class AppointmentCreate(BaseModel):
    """A booking request. ``appointment_time`` must be one of the slots."""

    appointment_date: date
    appointment_time: str
    client_notes: Optional[str] = None


class AppointmentReschedule(BaseModel):
    appointment_date: date
    appointment_time: str


class AppointmentAdminUpdate(BaseModel):
    """Status and/or nutritionist notes set from the admin portal."""

    status: Optional[str] = None
    notes: Optional[str] = None


class AppointmentRecord(_Record):
    id: int
    client_id: int
    client_name: Optional[str] = None
    appointment_date: date
    appointment_time: str
    duration_minutes: int = 60
    status: str
    notes: Optional[str] = None
    client_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ── Meal plans ────────────────────────────────────────────────────────────────


class MealInput(BaseModel):
    """One meal inside a plan day."""

    meal_type: str
    meal_name: str
    description: Optional[str] = None
    calories: Optional[int] = None
    protein_grams: Optional[float] = None
    carbs_grams: Optional[float] = None
    fat_grams: Optional[float] = None
    ingredients: Optional[str] = None
    instructions: Optional[str] = None


class MealPlanDayInput(BaseModel):
    day_number: int
    notes: Optional[str] = None
    meals: list[MealInput] = []


class MealPlanInput(BaseModel):
    """A full meal plan as authored in the editor.

    When ``days`` is empty, one empty day is created per ``duration_days``.
    """

    title: str
    description: Optional[str] = None
    duration_days: int = 7
    is_template: bool = True
    days: list[MealPlanDayInput] = []


class MealRecord(_Record, MealInput):
    id: int


class MealPlanDayRecord(_Record):
    id: int
    day_number: int
    notes: Optional[str] = None
    meals: list[MealRecord] = []


class MealPlanSummary(_Record):
    id: int
    title: str
    description: Optional[str] = None
    duration_days: int
    is_template: bool = True
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None


class MealPlanDetail(MealPlanSummary):
    """A meal plan with its days and meals, ordered by day number."""

    days: list[MealPlanDayRecord] = []


class AssignmentCreate(BaseModel):
    client_id: int
    meal_plan_id: int
    start_date: date
    end_date: Optional[date] = None
    notes: Optional[str] = None


class AssignmentUpdate(BaseModel):
    status: Optional[str] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None


class AssignmentRecord(_Record):
    """A plan-to-client assignment joined with plan and client names."""

    id: int
    client_id: int
    client_name: Optional[str] = None
    meal_plan_id: int
    meal_plan_title: Optional[str] = None
    meal_plan_description: Optional[str] = None
    duration_days: Optional[int] = None
    assigned_by: Optional[int] = None
    start_date: date
    end_date: Optional[date] = None
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class TodayMeal(MealRecord):
    completed: bool = False


class TodaysPlan(BaseModel):
    """The meals due today from the client's active assignment."""

    assignment_id: int
    meal_plan_id: int
    meal_plan_title: str
    day_number: int
    duration_days: int
    plan_date: date
    day_notes: Optional[str] = None
    meals: list[TodayMeal] = []


class MealCompletionToggle(BaseModel):
    """A plan meal; its day within the assignment fixes the log date."""

    meal_id: int


class MealCompletionResult(BaseModel):
    completed: bool
    meal_log_id: Optional[int] = None


# ── Meal logs & foods ─────────────────────────────────────────────────────────


class MealLogCreate(BaseModel):
    """A manually logged meal. Date and time default to now."""

    meal_name: str
    meal_type: str
    calories: Optional[int] = None
    protein_grams: Optional[float] = None
    carbs_grams: Optional[float] = None
    fat_grams: Optional[float] = None
    photo_url: Optional[str] = None
    notes: Optional[str] = None
    logged_date: Optional[date] = None
    logged_time: Optional[time] = None


class MealLogUpdate(BaseModel):
    meal_name: Optional[str] = None
    meal_type: Optional[str] = None
    calories: Optional[int] = None
    protein_grams: Optional[float] = None
    carbs_grams: Optional[float] = None
    fat_grams: Optional[float] = None
    notes: Optional[str] = None
    logged_date: Optional[date] = None
    logged_time: Optional[time] = None


class MealLogRecord(_Record):
    id: int
    user_id: int
    meal_name: str
    meal_type: str
    calories: Optional[int] = None
    protein_grams: Optional[float] = None
    carbs_grams: Optional[float] = None
    fat_grams: Optional[float] = None
    photo_url: Optional[str] = None
    notes: Optional[str] = None
    logged_date: date
    logged_time: time
    created_at: Optional[datetime] = None


class DailyTotals(BaseModel):
    calories: int = 0
    protein_grams: float = 0.0
    carbs_grams: float = 0.0
    fat_grams: float = 0.0
    meal_count: int = 0


class DailyMealLog(BaseModel):
    """All meals logged on one day, newest first, with their totals."""

    logged_date: date
    logs: list[MealLogRecord]
    totals: DailyTotals


class ServingValues(BaseModel):
    """Values used to prefill the meal logger for one serving of a food."""

    meal_name: str
    calories: Optional[int] = None
    protein_grams: Optional[float] = None
    carbs_grams: Optional[float] = None
    fat_grams: Optional[float] = None
    serving_size: Optional[str] = None


class FoodCreate(BaseModel):
    food_name: str
    category: str
    calories_per_100g: int
    protein_per_100g: Optional[float] = None
    carbs_per_100g: Optional[float] = None
    fat_per_100g: Optional[float] = None
    common_serving_size: Optional[str] = None
    common_serving_calories: Optional[int] = None


class FoodRecord(_Record, FoodCreate):
    id: int
    serving: Optional[ServingValues] = None


# ── Weight & progress ─────────────────────────────────────────────────────────


class WeightCreate(BaseModel):
    weight_kg: float
    recorded_date: Optional[date] = None
    notes: Optional[str] = None


class WeightEntry(_Record):
    """One row of a user's weight history."""

    id: int
    user_id: int
    weight_kg: float
    recorded_date: date
    notes: Optional[str] = None


class WeightTrend(BaseModel):
    """Linear extrapolation from the first and last weight records."""

    start_weight: float
    current_weight: float
    total_change: float  # current - start (signed)
    avg_weekly_change: float  # kg/week (signed)
    is_losing: bool
    weeks_to_target: Optional[float] = None
    projected_date: Optional[date] = None
    is_on_track: Optional[bool] = None
    moving_away: bool = False


class IdealPoint(BaseModel):
    day: int
    point_date: date
    weight_kg: float


class GoalTimeline(BaseModel):
    """Actual progress compared with a straight-line path to the target."""

    start_weight: float
    current_weight: float
    target_weight: float
    predicted_end_date: date
    total_days: int
    days_elapsed: int
    actual_rate: float  # kg/week, unsigned
    progress_pct: float
    is_on_track: bool
    is_ahead: bool
    projected_completion: Optional[date] = None
    days_ahead: Optional[int] = None  # positive = ahead of predicted end
    pace: Literal["slow", "healthy", "fast"]
    ideal_path: list[IdealPoint] = []


class Achievement(BaseModel):
    id: str
    title: str
    description: str
    category: Literal["milestone", "streak", "goal"]
    rarity: Literal["common", "rare", "epic", "legendary"]
    unlocked: bool
    progress: Optional[float] = None
    max_progress: Optional[float] = None


class ProgressSummary(BaseModel):
    """Everything the progress page shows, computed from one history read."""

    user_id: int
    history: list[WeightEntry] = []
    trend: Optional[WeightTrend] = None
    timeline: Optional[GoalTimeline] = None
    achievements: list[Achievement] = []
    streak: int = 0
    unlocked_count: int = 0


# ── Messages ──────────────────────────────────────────────────────────────────


class MessageCreate(BaseModel):
    """A new message. Clients omit ``recipient_id``; it goes to the nutritionist."""

    message: str
    subject: Optional[str] = None
    recipient_id: Optional[int] = None


class MessageRecord(_Record):
    id: int
    sender_id: int
    sender_name: Optional[str] = None
    recipient_id: int
    recipient_name: Optional[str] = None
    subject: Optional[str] = None
    message: str
    read: bool = False
    created_at: Optional[datetime] = None


class MarkReadRequest(BaseModel):
    """Mark received messages read: the given ids, or all from ``sender_id``.

    With neither set, every unread message to the caller is marked.
    """

    message_ids: Optional[list[int]] = None
    sender_id: Optional[int] = None


class UnreadCount(BaseModel):
    count: int


class DashboardStats(BaseModel):
    """Counts shown on the admin dashboard."""

    total_clients: int = 0
    pending_appointments: int = 0
    active_meal_plans: int = 0
    unread_messages: int = 0


# ── Notifications ─────────────────────────────────────────────────────────────


class _CamelModel(BaseModel):
    """Request bodies for the notification functions use camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AppointmentNotification(_CamelModel):
    client_email: EmailStr
    client_name: str
    appointment_date: str
    appointment_time: str
    notes: Optional[str] = None


class AppointmentRequestNotification(_CamelModel):
    admin_email: EmailStr
    client_name: str
    client_email: EmailStr
    appointment_date: str
    appointment_time: str
    client_notes: Optional[str] = None


class MealPlanNotification(_CamelModel):
    client_email: EmailStr
    client_name: str
    meal_plan_title: str
    start_date: str
    end_date: Optional[str] = None
    notes: Optional[str] = None
