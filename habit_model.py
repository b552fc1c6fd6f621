# habit_model.py
from datetime import datetime
from typing import Any, Dict, List, Optional

import streaks
from errors import AlreadyCompletedToday, ValidationFailure

CATEGORIES = (
    "EXERCISE", "DIET", "HYDRATION", "SLEEP", "MINDFULNESS",
    "SKILL_DEVELOPMENT", "READING", "LEARNING", "WAKE_UP_ON_TIME",
    "PLANNING", "FOCUSED_WORK", "CHORES", "FINANCES", "SOCIAL",
    "NO_SMOKING", "NO_JUNK_FOOD", "LIMITED_SCREEN_TIME",
)

TITLE_MIN, TITLE_MAX = 3, 100
DESCRIPTION_MAX = 500
EDITABLE_FIELDS = ("title", "description", "category", "isDaily")
TITLE_TAKEN = "A habit with this title already exists"


def parse_timestamp(value) -> Optional[datetime]:
    """Accept datetimes, Firestore timestamps and ISO strings (local JSON storage)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if hasattr(value, "to_datetime"):
        return value.to_datetime()
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationFailure(f"Invalid timestamp: {value}")
    raise ValidationFailure(f"Invalid timestamp: {value!r}")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_bool(value, field):
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ValidationFailure(f"{field} must be a boolean")


def _text(data, field, errors):
    """Trimmed string value of ``field``; None (with an error recorded) for non-strings."""
    value = data.get(field)
    if value is None:
        return ""
    if not isinstance(value, str):
        errors.append(f"{field} must be a string")
        return None
    return value.strip()


def validate_habit_fields(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Clean the user-editable habit fields.

    With ``partial`` only the keys present in ``data`` are checked (updates);
    otherwise title and category are required (creation).
    Returns the cleaned values keyed by document field name.
    """
    if not partial and (not data.get("title") or not data.get("category")):
        raise ValidationFailure("Title and category are required!")

    cleaned: Dict[str, Any] = {}
    errors: List[str] = []

    if "title" in data:
        title = _text(data, "title", errors)
        if title is not None:
            if not title:
                errors.append("Habit title is required")
            elif len(title) < TITLE_MIN:
                errors.append(f"Habit title must be at least {TITLE_MIN} characters long")
            elif len(title) > TITLE_MAX:
                errors.append(f"Habit title cannot exceed {TITLE_MAX} characters")
            cleaned["title"] = title

    if "description" in data:
        description = _text(data, "description", errors)
        if description is not None:
            if len(description) > DESCRIPTION_MAX:
                errors.append(f"Description cannot exceed {DESCRIPTION_MAX} characters")
            cleaned["description"] = description

    if "category" in data:
        category = _text(data, "category", errors)
        if category is not None:
            category = category.upper()
            if not category:
                errors.append("Category is required")
            elif category not in CATEGORIES:
                errors.append(f"{category} is not a valid category")
            cleaned["category"] = category

    if "isDaily" in data and data["isDaily"] is not None:
        try:
            cleaned["isDaily"] = _parse_bool(data["isDaily"], "isDaily")
        except ValidationFailure as e:
            errors.append(e.message)

    if errors:
        raise ValidationFailure(", ".join(errors))
    return cleaned


class Habit:
    """A user's habit and its persisted streak counters."""

    def __init__(
        self,
        owner_id: str,
        title: str,
        category: str,
        description: str = "",
        is_daily: bool = True,
        streak_count: int = 0,
        longest_streak: int = 0,
        last_completed: Optional[datetime] = None,
        completions: Optional[List[datetime]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        id: Optional[str] = None,
    ):
        self.id = id
        self.owner_id = owner_id
        self.title = title
        self.description = description
        self.category = category
        self.is_daily = is_daily
        self.streak_count = streak_count
        self.longest_streak = longest_streak
        self.last_completed = last_completed
        self.completions = list(completions or [])
        self.created_at = created_at
        self.updated_at = updated_at or created_at

    def __repr__(self):
        return f"<Habit {self.id} {self.title!r} streak={self.streak_count}>"

    # ---------- behaviour ----------
    def update_streak(self, now: datetime) -> None:
        """
        Record a completion at ``now``.

        Non-daily habits are left untouched. The caller must have checked
        :meth:`completed_on` first; calling this twice on one calendar day
        resets the streak to 1 and logs a second completion.
        """
        if not self.is_daily:
            return

        self.streak_count, self.longest_streak = streaks.update_streak(
            self.streak_count, self.longest_streak, self.last_completed, now
        )
        self.last_completed = now
        self.completions.append(now)
        self.updated_at = now

    def completed_on(self, now: datetime) -> bool:
        if self.last_completed is None:
            return False
        return streaks.normalize_to_day(self.last_completed) == streaks.normalize_to_day(now)

    def completion_rate(self, now: datetime) -> float:
        return streaks.completion_rate(self.created_at, len(self.completions), now)

    def period_stats(self, now: datetime, window_days: int) -> Dict[str, Any]:
        return streaks.period_stats(self.completions, now, window_days)

    def streak_alive(self, now: datetime) -> bool:
        """True when the stored streak still counts: last completion today or yesterday."""
        if self.streak_count <= 0 or self.last_completed is None:
            return False
        gap = streaks.normalize_to_day(now) - streaks.normalize_to_day(self.last_completed)
        return gap.days <= 1

    def apply_changes(self, changes: Dict[str, Any], now: datetime) -> None:
        if "title" in changes:
            self.title = changes["title"]
        if "description" in changes:
            self.description = changes["description"]
        if "category" in changes:
            self.category = changes["category"]
        if "isDaily" in changes:
            self.is_daily = changes["isDaily"]
        self.updated_at = now

    # ---------- conversion ----------
    def streak_state(self) -> Dict[str, Any]:
        """The fields a completion writes back."""
        return {
            "streakCount": self.streak_count,
            "longestStreak": self.longest_streak,
            "lastCompleted": self.last_completed,
            "completions": [{"date": ts} for ts in self.completions],
            "updatedAt": self.updated_at,
        }

    def to_document(self) -> Dict[str, Any]:
        doc = {
            "owner": self.owner_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "isDaily": self.is_daily,
            "createdAt": self.created_at,
        }
        doc.update(self.streak_state())
        return doc

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Habit":
        completions = []
        for entry in data.get("completions") or []:
            ts = entry.get("date") if isinstance(entry, dict) else entry
            completions.append(parse_timestamp(ts))

        return cls(
            id=doc_id,
            owner_id=data.get("owner"),
            title=data.get("title", ""),
            description=data.get("description") or "",
            category=data.get("category", ""),
            is_daily=data.get("isDaily", True),
            streak_count=int(data.get("streakCount") or 0),
            longest_streak=int(data.get("longestStreak") or 0),
            last_completed=parse_timestamp(data.get("lastCompleted")),
            completions=completions,
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )

    def to_json(self, now: datetime) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "id": self.id,
            "owner": self.owner_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "isDaily": self.is_daily,
            "streakCount": self.streak_count,
            "longestStreak": self.longest_streak,
            "lastCompleted": _iso(self.last_completed),
            "completions": [{"date": _iso(ts)} for ts in self.completions],
            "completionRate": self.completion_rate(now),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


def new_habit(owner_id: str, data: Dict[str, Any], now: datetime) -> Habit:
    """Build a fresh habit from a create request; counters start at zero."""
    fields = validate_habit_fields(data)
    return Habit(
        owner_id=owner_id,
        title=fields["title"],
        description=fields.get("description", ""),
        category=fields["category"],
        is_daily=fields.get("isDaily", True),
        created_at=now,
        updated_at=now,
    )


def mark_complete(habit: Habit, now: datetime) -> Habit:
    """Enforce the once-per-calendar-day rule, then run the streak update."""
    if habit.completed_on(now):
        raise AlreadyCompletedToday()
    habit.update_streak(now)
    return habit
