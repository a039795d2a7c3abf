"""Nutrition progress calculation engine.

All quantitative work happens here: weight-trend extrapolation, the goal
timeline against a healthy-pace ideal path, logging streaks, achievement
unlocks and meal-plan calendar arithmetic. Every function is pure and
takes ``today`` explicitly so results are reproducible.
"""

from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from typing import Literal

from app.models import (
    Achievement,
    DailyTotals,
    GoalTimeline,
    IdealPoint,
    ServingValues,
    WeightEntry,
    WeightTrend,
)

# Bookable consultation start times: two blocks, every 30 minutes.
TIME_SLOTS: tuple[str, ...] = (
    "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
    "13:00", "13:30", "14:00", "14:30", "15:00", "15:30", "16:00", "16:30",
)

# A sustainable rate of weight change, kg per week.
HEALTHY_WEEKLY_RATE = 0.75

_SLOW_PACE = 0.5
_FAST_PACE = 1.0

# (kg, rarity, (title, description) when losing, (title, description) when gaining)
_WEIGHT_MILESTONES: list[tuple[int, str, tuple[str, str], tuple[str, str]]] = [
    (1, "common", ("First Kilogram", "Lost your first kg!"),
     ("Gaining Ground", "Gained your first kg!")),
    (5, "rare", ("Big Progress", "Lost 5kg - amazing!"),
     ("Building Up", "Gained 5kg - fantastic!")),
    (10, "epic", ("Transformation", "Lost 10kg - incredible!"),
     ("Serious Gains", "Gained 10kg - powerful!")),
    (15, "legendary", ("Unstoppable", "Lost 15kg - you're a champion!"),
     ("Unstoppable", "Gained 15kg - beast mode!")),
]

# (days, title, description, rarity)
_STREAK_MILESTONES: list[tuple[int, str, str, str]] = [
    (3, "Consistency", "3-day logging streak", "common"),
    (7, "Week Warrior", "7-day logging streak", "rare"),
    (30, "Monthly Master", "30-day logging streak!", "epic"),
    (100, "Legendary Dedication", "100-day logging streak!!!", "legendary"),
]

# (entries, title, description, rarity)
_LOG_MILESTONES: list[tuple[int, str, str, str]] = [
    (10, "Data Collector", "Logged 10 weight entries", "common"),
    (50, "Tracking Pro", "Logged 50 weight entries", "rare"),
]


def is_bookable_date(day: date, today: date) -> bool:
    """Consultations are held on weekdays, from today onward."""
    return day >= today and day.weekday() < 5


def _sorted_history(history: Iterable[WeightEntry]) -> list[WeightEntry]:
    return sorted(history, key=lambda record: record.recorded_date)


# ── Weight trend ──────────────────────────────────────────────────────────────


def weight_trend(
    history: Sequence[WeightEntry],
    target_weight: float | None,
    today: date,
) -> WeightTrend | None:
    """Extrapolate the weight trend linearly from the first to the last record.

    Args:
        history: Weight records in any order.
        target_weight: The client's goal weight, if set.
        today: Reference date for the projection.

    Returns:
        A ``WeightTrend``, or ``None`` with fewer than two records.
    """
    if len(history) < 2:
        return None

    records = _sorted_history(history)
    first, last = records[0], records[-1]
    start, current = first.weight_kg, last.weight_kg
    change = current - start
    is_losing = change < 0

    days = max(1, (last.recorded_date - first.recorded_date).days)
    weeks = days / 7
    avg_weekly_change = change / weeks

    weeks_to_target: float | None = None
    projected_date: date | None = None
    is_on_track: bool | None = None
    moving_away = False

    if target_weight:
        is_on_track = (is_losing and current > target_weight) or (
            not is_losing and current < target_weight
        )
        if avg_weekly_change != 0:
            weeks_to_target = abs((current - target_weight) / avg_weekly_change)
            projected_date = today + timedelta(days=round(weeks_to_target * 7))
            moving_away = (target_weight - current) * avg_weekly_change < 0

    return WeightTrend(
        start_weight=start,
        current_weight=current,
        total_change=round(change, 2),
        avg_weekly_change=round(avg_weekly_change, 2),
        is_losing=is_losing,
        weeks_to_target=round(weeks_to_target, 1) if weeks_to_target is not None else None,
        projected_date=projected_date,
        is_on_track=is_on_track,
        moving_away=moving_away,
    )


# ── Goal timeline ─────────────────────────────────────────────────────────────


def _pace_label(rate: float) -> Literal["slow", "healthy", "fast"]:
    if rate < _SLOW_PACE:
        return "slow"
    if rate > _FAST_PACE:
        return "fast"
    return "healthy"


def goal_timeline(
    history: Sequence[WeightEntry],
    start_weight: float | None,
    target_weight: float | None,
    target_date: date | None,
    today: date,
) -> GoalTimeline | None:
    """Compare actual progress with a straight-line path to the target.

    The ideal path runs from ``start_weight`` on the first record's date to
    ``target_weight`` on the target date (or, without one, on the date a
    healthy 0.75 kg/week pace would reach it). The chart window always
    extends at least 30 days past today.

    Returns:
        A ``GoalTimeline``, or ``None`` without a start weight, a target
        weight and at least one record.
    """
    if not history or start_weight is None or target_weight is None:
        return None

    records = _sorted_history(history)
    first_date = records[0].recorded_date
    current = records[-1].weight_kg
    losing = target_weight < start_weight
    goal_change = abs(target_weight - start_weight)

    if target_date is not None:
        predicted_end = target_date
    else:
        healthy_weeks = goal_change / HEALTHY_WEEKLY_RATE
        predicted_end = first_date + timedelta(days=round(healthy_weeks * 7))

    days_elapsed = max(0, (today - first_date).days)
    weeks_elapsed = days_elapsed / 7
    actual_rate = abs(current - start_weight) / weeks_elapsed if weeks_elapsed > 0 else 0.0
    total_days = max((predicted_end - first_date).days, days_elapsed + 30)

    ideal_path = [
        IdealPoint(
            day=day,
            point_date=first_date + timedelta(days=day),
            weight_kg=round(start_weight + (target_weight - start_weight) * day / total_days, 2),
        )
        for day in range(total_days + 1)
    ]

    # Change achieved in the direction of the target; moving the wrong way counts as none.
    achieved = max(0.0, start_weight - current if losing else current - start_weight)
    if goal_change > 0:
        progress_pct = min(100.0, achieved / goal_change * 100)
    else:
        progress_pct = 100.0
    is_on_track = achieved >= goal_change * (days_elapsed / total_days) * 0.8

    ideal_today = ideal_path[days_elapsed].weight_kg
    is_ahead = current < ideal_today if losing else current > ideal_today

    projected_completion: date | None = None
    days_ahead: int | None = None
    if actual_rate > 0:
        remaining_weeks = abs(target_weight - current) / actual_rate
        projected_completion = today + timedelta(days=round(remaining_weeks * 7))
        days_ahead = (predicted_end - projected_completion).days

    return GoalTimeline(
        start_weight=start_weight,
        current_weight=current,
        target_weight=target_weight,
        predicted_end_date=predicted_end,
        total_days=total_days,
        days_elapsed=days_elapsed,
        actual_rate=round(actual_rate, 2),
        progress_pct=round(progress_pct, 1),
        is_on_track=is_on_track,
        is_ahead=is_ahead,
        projected_completion=projected_completion,
        days_ahead=days_ahead,
        pace=_pace_label(actual_rate),
        ideal_path=ideal_path,
    )


# ── Streaks & achievements ────────────────────────────────────────────────────


def logging_streak(dates: Iterable[date], today: date) -> int:
    """Count consecutive logged days ending today (0 if today has no entry)."""
    logged = set(dates)
    streak = 0
    day = today
    while day in logged:
        streak += 1
        day -= timedelta(days=1)
    return streak


def evaluate_achievements(
    history: Sequence[WeightEntry],
    start_weight: float | None,
    target_weight: float | None,
    today: date,
) -> list[Achievement]:
    """Evaluate the fixed achievement table against a weight history.

    Args:
        history: Weight records in any order.
        start_weight: Weight at onboarding; defaults to the first record.
        target_weight: Goal weight. Enables the goal achievements.
        today: Reference date for the logging streak.

    Returns:
        Every achievement with its unlock state and progress, in display
        order. Empty when there is no history.
    """
    if not history:
        return []

    records = _sorted_history(history)
    current = records[-1].weight_kg
    first_weight = start_weight or records[0].weight_kg
    total_change = abs(current - first_weight)
    is_losing = current < first_weight
    streak = logging_streak((r.recorded_date for r in records), today)
    total_logs = len(records)

    achievements = [
        Achievement(
            id="first-log",
            title="Getting Started",
            description="Logged your first weight",
            category="milestone",
            rarity="common",
            unlocked=total_logs >= 1,
        )
    ]

    for kg, rarity, losing_text, gaining_text in _WEIGHT_MILESTONES:
        title, description = losing_text if is_losing else gaining_text
        achievements.append(
            Achievement(
                id=f"{kg}kg-milestone",
                title=title,
                description=description,
                category="milestone",
                rarity=rarity,
                unlocked=total_change >= kg,
                progress=round(total_change, 2),
                max_progress=kg,
            )
        )

    if target_weight:
        goal_is_loss = target_weight < first_weight
        reached = current <= target_weight if goal_is_loss else current >= target_weight
        achievements.append(
            Achievement(
                id="target-reached",
                title="Goal Achieved!",
                description="Reached your target weight",
                category="goal",
                rarity="legendary",
                unlocked=reached,
            )
        )

    if target_weight and start_weight:
        halfway = abs(target_weight - start_weight) * 0.5
        moved = abs(current - start_weight)
        achievements.append(
            Achievement(
                id="halfway-there",
                title="Halfway There",
                description="50% to your goal!",
                category="goal",
                rarity="epic",
                unlocked=moved >= halfway,
                progress=round(moved, 2),
                max_progress=round(halfway, 2),
            )
        )

    for days, title, description, rarity in _STREAK_MILESTONES:
        achievements.append(
            Achievement(
                id=f"{days}-day-streak",
                title=title,
                description=description,
                category="streak",
                rarity=rarity,
                unlocked=streak >= days,
                progress=streak,
                max_progress=days,
            )
        )

    for count, title, description, rarity in _LOG_MILESTONES:
        achievements.append(
            Achievement(
                id=f"{count}-logs",
                title=title,
                description=description,
                category="milestone",
                rarity=rarity,
                unlocked=total_logs >= count,
                progress=total_logs,
                max_progress=count,
            )
        )

    return achievements


# ── Meals ─────────────────────────────────────────────────────────────────────


def daily_totals(logs: Iterable) -> DailyTotals:  # type: ignore[type-arg]
    """Sum nutrition over meal logs; missing values count as zero."""
    totals = DailyTotals()
    for log in logs:
        totals.calories += log.calories or 0
        totals.protein_grams += log.protein_grams or 0
        totals.carbs_grams += log.carbs_grams or 0
        totals.fat_grams += log.fat_grams or 0
        totals.meal_count += 1
    totals.protein_grams = round(totals.protein_grams, 1)
    totals.carbs_grams = round(totals.carbs_grams, 1)
    totals.fat_grams = round(totals.fat_grams, 1)
    return totals


def plan_day_number(start_date: date, today: date) -> int:
    """1-based day of a plan that started on ``start_date``."""
    return (today - start_date).days + 1


def meal_date(start_date: date, day_number: int) -> date:
    """Calendar date of a plan day."""
    return start_date + timedelta(days=day_number - 1)


def completion_key(logged_date: date, meal_type: str, meal_name: str) -> str:
    """Key that identifies a completed plan meal among a client's meal logs."""
    return f"{logged_date.isoformat()}_{meal_type}_{meal_name}"


def serving_values(food) -> ServingValues:  # type: ignore[no-untyped-def]
    """Prefill values for logging one common serving of ``food``.

    Calories come from the common serving; macros are the per-100 g values.
    """
    return ServingValues(
        meal_name=food.food_name,
        calories=food.common_serving_calories,
        protein_grams=food.protein_per_100g,
        carbs_grams=food.carbs_per_100g,
        fat_grams=food.fat_per_100g,
        serving_size=food.common_serving_size,
    )
