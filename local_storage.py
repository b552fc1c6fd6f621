import json
import logging
import os
import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from errors import NotFound, ValidationFailure
from habit_model import TITLE_TAKEN, Habit, mark_complete
from streaks import as_local

logger = logging.getLogger(__name__)


def _encode(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class LocalStorage:
    """JSON file storage for users and habits when Firestore is unavailable.

    All access to ``data`` holds ``_lock``.
    With ``storage_file=None`` nothing is written to disk (tests).
    """

    def __init__(self, storage_file: Optional[str] = "local_habits.json"):
        self.storage_file = storage_file
        self._lock = threading.RLock()
        self.data = self._load()

    def _load(self) -> Dict[str, Dict[str, Dict]]:
        """Load users and habits from the local JSON file"""
        empty = {"users": {}, "habits": {}}
        if self.storage_file and os.path.exists(self.storage_file):
            try:
                with open(self.storage_file, 'r', encoding='utf-8') as f:
                    loaded = json.load(f)
                empty.update(loaded)
            except (json.JSONDecodeError, IOError) as e:
                logger.error("[local_storage] could not load %s: %s", self.storage_file, e)
        return empty

    def _save(self):
        if not self.storage_file:
            return
        with open(self.storage_file, 'w', encoding='utf-8') as f:
            json.dump(self.data, f, indent=2, default=_encode)

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex

    # -------------------------
    # Users
    # -------------------------
    def add_user(self, user_data: Dict[str, Any]) -> str:
        with self._lock:
            user_id = self._new_id()
            self.data["users"][user_id] = dict(user_data)
            self._save()
        return user_id

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self.data["users"].get(user_id)
            if doc is None:
                return None
            return dict(doc, id=user_id)

    def _find_user(self, field: str, value: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            for user_id, doc in self.data["users"].items():
                if doc.get(field) == value:
                    return dict(doc, id=user_id)
        return None

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self._find_user("email", email)

    def find_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return self._find_user("username", username)

    def delete_user(self, user_id: str) -> bool:
        with self._lock:
            removed = self.data["users"].pop(user_id, None)
            self._save()
        return removed is not None

    # -------------------------
    # Habits
    # -------------------------
    def add_habit(self, habit: Habit) -> Habit:
        """Store a new habit; ValidationFailure if the owner already uses its title."""
        with self._lock:
            if self.title_taken(habit.owner_id, habit.title):
                raise ValidationFailure(TITLE_TAKEN)
            habit.id = self._new_id()
            self.data["habits"][habit.id] = habit.to_document()
            self._save()
        return habit

    def get_habit(self, habit_id: str, owner_id: str) -> Habit:
        with self._lock:
            doc = self.data["habits"].get(habit_id)
            if doc is None or doc.get("owner") != owner_id:
                raise NotFound("Habit not found")
            return Habit.from_document(habit_id, doc)

    def list_habits(self, owner_id: str, category: Optional[str] = None,
                    is_daily: Optional[bool] = None) -> List[Habit]:
        habits = []
        with self._lock:
            for habit_id, doc in self.data["habits"].items():
                if doc.get("owner") != owner_id:
                    continue
                if category is not None and doc.get("category") != category:
                    continue
                if is_daily is not None and doc.get("isDaily") != is_daily:
                    continue
                habits.append(Habit.from_document(habit_id, doc))
        habits.sort(key=lambda h: as_local(h.created_at) if h.created_at else datetime.min)
        return habits

    def title_taken(self, owner_id: str, title: str, exclude_id: Optional[str] = None) -> bool:
        with self._lock:
            return any(
                doc.get("owner") == owner_id and doc.get("title") == title and habit_id != exclude_id
                for habit_id, doc in self.data["habits"].items()
            )

    def update_habit(self, habit_id: str, owner_id: str, changes: Dict[str, Any], now: datetime) -> Habit:
        with self._lock:
            habit = self.get_habit(habit_id, owner_id)
            if "title" in changes and self.title_taken(owner_id, changes["title"], exclude_id=habit_id):
                raise ValidationFailure(TITLE_TAKEN)
            habit.apply_changes(changes, now)
            self.data["habits"][habit_id] = habit.to_document()
            self._save()
        return habit

    def delete_habit(self, habit_id: str, owner_id: str) -> None:
        with self._lock:
            self.get_habit(habit_id, owner_id)
            del self.data["habits"][habit_id]
            self._save()

    def delete_habits_for_owner(self, owner_id: str) -> int:
        with self._lock:
            owned = [hid for hid, doc in self.data["habits"].items() if doc.get("owner") == owner_id]
            for habit_id in owned:
                del self.data["habits"][habit_id]
            self._save()
        return len(owned)

    def complete_habit(self, habit_id: str, owner_id: str, now: datetime) -> Habit:
        # same-day check and write under one lock
        with self._lock:
            habit = mark_complete(self.get_habit(habit_id, owner_id), now)
            self.data["habits"][habit_id].update(habit.streak_state())
            self._save()
        return habit
