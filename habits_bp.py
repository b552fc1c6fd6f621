# habits_bp.py
import logging
import math
import re
from datetime import datetime

from flask import Blueprint, g, jsonify, request

import streaks
from auth_manager import get_store, request_json, require_auth
from errors import InvalidPeriod, ValidationFailure
from habit_model import EDITABLE_FIELDS, new_habit, validate_habit_fields

logger = logging.getLogger(__name__)

habits_bp = Blueprint("habits", __name__)

HABIT_ID_PATTERN = re.compile(r'^[A-Za-z0-9]{16,64}$')
DEFAULT_LIMIT, MAX_LIMIT = 10, 50
DEFAULT_PERIOD, MAX_PERIOD = 30, 365


def _ts_key(value):
    return streaks.as_local(value) if value else datetime.min


SORT_KEYS = {
    "createdAt": lambda h: _ts_key(h.created_at),
    "updatedAt": lambda h: _ts_key(h.updated_at),
    "title": lambda h: h.title.lower(),
    "category": lambda h: h.category,
    "streakCount": lambda h: h.streak_count,
    "longestStreak": lambda h: h.longest_streak,
}


def _check_habit_id(habit_id):
    if not HABIT_ID_PATTERN.match(habit_id):
        raise ValidationFailure("Invalid habit ID")
    return habit_id


def _int_arg(name, default):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return None


# ---------------- Create ---------------- #
@habits_bp.route("/create-new-habit", methods=["POST"])
@require_auth
def create_habit():
    now = streaks.current_time()
    habit = new_habit(g.user_id, request_json(), now)

    # the store rejects a title the owner already uses
    get_store().add_habit(habit)
    logger.info("[create_habit] %s created %s (%s)", g.user_id, habit.id, habit.title)
    return jsonify({"success": True,
                    "message": "Habit created successfully",
                    "data": habit.to_json(now)}), 201


# ---------------- List ---------------- #
@habits_bp.route("/my-habits", methods=["GET"])
@require_auth
def my_habits():
    page = _int_arg("page", 1)
    if page is None or page < 1:
        raise ValidationFailure("Page number must be a positive integer")

    limit = _int_arg("limit", DEFAULT_LIMIT)
    if limit is None or not 1 <= limit <= MAX_LIMIT:
        raise ValidationFailure(f"Limit must be between 1 and {MAX_LIMIT}")

    sort_by = request.args.get("sortBy") or "createdAt"
    if sort_by not in SORT_KEYS:
        raise ValidationFailure(f"Cannot sort by {sort_by}")
    sort_order = (request.args.get("sortOrder") or "desc").lower()
    if sort_order not in ("asc", "desc"):
        raise ValidationFailure("sortOrder must be 'asc' or 'desc'")

    category = (request.args.get("category") or "").strip().upper() or None
    is_daily = None
    if request.args.get("isDaily") not in (None, ""):
        is_daily = request.args["isDaily"].lower() == "true"

    habits = get_store().list_habits(g.user_id, category=category, is_daily=is_daily)

    search = (request.args.get("search") or "").strip().lower()
    if search:
        habits = [h for h in habits if search in h.title.lower()]

    habits.sort(key=SORT_KEYS[sort_by], reverse=(sort_order == "desc"))

    total = len(habits)
    total_pages = max(1, math.ceil(total / limit))
    page_items = habits[(page - 1) * limit: page * limit]
    now = streaks.current_time()

    return jsonify({
        "success": True,
        "data": [h.to_json(now) for h in page_items],
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalHabits": total,
            "habitsPerPage": limit,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    }), 200


# ---------------- Summary ---------------- #
@habits_bp.route("/my-summary", methods=["GET"])
@require_auth
def my_summary():
    habits = get_store().list_habits(g.user_id)
    now = streaks.current_time()

    rates = [h.completion_rate(now) for h in habits]
    return jsonify({"success": True, "data": {
        "totalHabits": len(habits),
        "activeStreaks": sum(1 for h in habits if h.streak_alive(now)),
        "longestOverallStreak": max((h.longest_streak for h in habits), default=0),
        "averageCompletionRate": sum(rates) / len(rates) if rates else 0,
        "completedToday": sum(1 for h in habits if h.completed_on(now)),
        "totalCompletions": sum(len(h.completions) for h in habits),
    }}), 200


# ---------------- Single habit ---------------- #
@habits_bp.route("/<habit_id>/details", methods=["GET"])
@require_auth
def habit_details(habit_id):
    habit = get_store().get_habit(_check_habit_id(habit_id), g.user_id)
    return jsonify({"success": True, "data": habit.to_json(streaks.current_time())}), 200


@habits_bp.route("/<habit_id>/update", methods=["PUT"])
@require_auth
def update_habit(habit_id):
    _check_habit_id(habit_id)
    data = request_json()

    # streak counters and completions are only ever written by mark-complete
    editable = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
    if not editable:
        raise ValidationFailure("No valid fields to update")
    changes = validate_habit_fields(editable, partial=True)

    now = streaks.current_time()
    habit = get_store().update_habit(habit_id, g.user_id, changes, now)
    logger.info("[update_habit] %s updated %s: %s", g.user_id, habit_id, sorted(changes))
    return jsonify({"success": True,
                    "message": "Habit updated successfully",
                    "data": habit.to_json(now)}), 200


@habits_bp.route("/<habit_id>/remove", methods=["DELETE"])
@require_auth
def remove_habit(habit_id):
    get_store().delete_habit(_check_habit_id(habit_id), g.user_id)
    logger.info("[remove_habit] %s deleted %s", g.user_id, habit_id)
    return jsonify({"success": True, "message": "Habit deleted successfully"}), 200


# ---------------- Completion ---------------- #
@habits_bp.route("/<habit_id>/mark-complete", methods=["POST"])
@require_auth
def mark_complete(habit_id):
    now = streaks.current_time()
    habit = get_store().complete_habit(_check_habit_id(habit_id), g.user_id, now)
    logger.info("[mark_complete] habit %s streak=%d longest=%d",
                habit_id, habit.streak_count, habit.longest_streak)
    return jsonify({"success": True,
                    "message": "Habit marked as complete",
                    "data": habit.to_json(now)}), 200


# ---------------- Statistics ---------------- #
@habits_bp.route("/<habit_id>/statistics", methods=["GET"])
@require_auth
def habit_statistics(habit_id):
    _check_habit_id(habit_id)
    period = _int_arg("period", DEFAULT_PERIOD)
    if period is None or not 1 <= period <= MAX_PERIOD:
        raise InvalidPeriod(f"Period must be a number of days between 1 and {MAX_PERIOD}")

    habit = get_store().get_habit(habit_id, g.user_id)
    now = streaks.current_time()
    window = habit.period_stats(now, period)

    return jsonify({"success": True, "data": {
        "totalCompletions": len(habit.completions),
        "currentStreak": habit.streak_count,
        "longestStreak": habit.longest_streak,
        "overallCompletionRate": streaks.format_rate(habit.completion_rate(now)),
        "lastCompleted": habit.last_completed.isoformat() if habit.last_completed else None,
        "createdAt": habit.created_at.isoformat() if habit.created_at else None,
        "period": {
            "days": period,
            "completions": window["completions"],
            "completionRate": streaks.format_rate(window["completionRate"]),
            "longestStreak": window["longestStreak"],
        },
    }}), 200
