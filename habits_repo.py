# habits_repo.py
import hashlib
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from google.api_core.exceptions import Conflict, FailedPrecondition

from errors import ConcurrentUpdate, NotFound, ValidationFailure
from habit_model import TITLE_TAKEN, Habit, mark_complete
from streaks import as_local

logger = logging.getLogger(__name__)

USERS = "users"
HABITS = "habits"
# one document per (owner, title); created alongside the habit so a taken title fails the batch
HABIT_TITLES = "habit_titles"
MAX_WRITE_ATTEMPTS = 3


class FirestoreRepo:
    """Users and habits stored in Cloud Firestore."""

    def __init__(self, db):
        self.db = db

    # -------------------------
    # Users
    # -------------------------
    def add_user(self, user_data: Dict[str, Any]) -> str:
        doc = self.db.collection(USERS).document()
        doc.set(user_data)
        return doc.id

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        snap = self.db.collection(USERS).document(user_id).get()
        if not snap.exists:
            return None
        user = snap.to_dict() or {}
        user["id"] = snap.id
        return user

    def _find_user(self, field: str, value: str) -> Optional[Dict[str, Any]]:
        docs = self.db.collection(USERS).where(field, "==", value).limit(1).stream()
        for d in docs:
            user = d.to_dict() or {}
            user["id"] = d.id
            return user
        return None

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self._find_user("email", email)

    def find_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return self._find_user("username", username)

    def delete_user(self, user_id: str) -> bool:
        ref = self.db.collection(USERS).document(user_id)
        if not ref.get().exists:
            return False
        ref.delete()
        return True

    # -------------------------
    # Habits
    # -------------------------
    def _owned(self, snap, owner_id: str) -> Habit:
        """Habit from a snapshot, or NotFound when missing or owned by someone else."""
        if not snap.exists:
            raise NotFound("Habit not found")
        data = snap.to_dict() or {}
        if data.get("owner") != owner_id:
            raise NotFound("Habit not found")
        return Habit.from_document(snap.id, data)

    def _title_ref(self, owner_id: str, title: str):
        key = hashlib.sha1(f"{owner_id}\n{title}".encode("utf-8")).hexdigest()
        return self.db.collection(HABIT_TITLES).document(key)

    def _commit_claiming_title(self, batch) -> None:
        try:
            batch.commit()
        except Conflict:
            raise ValidationFailure(TITLE_TAKEN)

    def add_habit(self, habit: Habit) -> Habit:
        """Create the habit and claim its title in one batch."""
        doc = self.db.collection(HABITS).document()
        batch = self.db.batch()
        batch.create(self._title_ref(habit.owner_id, habit.title),
                     {"owner": habit.owner_id, "habitId": doc.id})
        batch.set(doc, habit.to_document())
        self._commit_claiming_title(batch)

        habit.id = doc.id
        logger.info("[habits_repo] created habit %s for owner %s", habit.id, habit.owner_id)
        return habit

    def get_habit(self, habit_id: str, owner_id: str) -> Habit:
        return self._owned(self.db.collection(HABITS).document(habit_id).get(), owner_id)

    def list_habits(self, owner_id: str, category: Optional[str] = None,
                    is_daily: Optional[bool] = None) -> List[Habit]:
        """
        All of an owner's habits, optionally narrowed by equality filters.

        Search, sorting and pagination happen in the caller; Firestore has no
        substring match and arbitrary sort keys would each need an index.
        """
        query = self.db.collection(HABITS).where("owner", "==", owner_id)
        if category is not None:
            query = query.where("category", "==", category)
        if is_daily is not None:
            query = query.where("isDaily", "==", is_daily)

        habits = [Habit.from_document(d.id, d.to_dict() or {}) for d in query.stream()]
        habits.sort(key=lambda h: as_local(h.created_at) if h.created_at else datetime.min)
        return habits

    def update_habit(self, habit_id: str, owner_id: str, changes: Dict[str, Any], now: datetime) -> Habit:
        ref = self.db.collection(HABITS).document(habit_id)
        habit = self._owned(ref.get(), owner_id)
        old_title = habit.title
        habit.apply_changes(changes, now)
        update = dict(changes)
        update["updatedAt"] = habit.updated_at

        batch = self.db.batch()
        if habit.title != old_title:
            batch.create(self._title_ref(owner_id, habit.title),
                         {"owner": owner_id, "habitId": habit_id})
            batch.delete(self._title_ref(owner_id, old_title))
        batch.update(ref, update)
        self._commit_claiming_title(batch)
        return habit

    def delete_habit(self, habit_id: str, owner_id: str) -> None:
        ref = self.db.collection(HABITS).document(habit_id)
        habit = self._owned(ref.get(), owner_id)
        batch = self.db.batch()
        batch.delete(ref)
        batch.delete(self._title_ref(owner_id, habit.title))
        batch.commit()

    def delete_habits_for_owner(self, owner_id: str) -> int:
        batch = self.db.batch()
        count = 0
        for d in self.db.collection(HABITS).where("owner", "==", owner_id).stream():
            batch.delete(d.reference)
            batch.delete(self._title_ref(owner_id, (d.to_dict() or {}).get("title", "")))
            count += 1
        batch.commit()
        return count

    def complete_habit(self, habit_id: str, owner_id: str, now: datetime) -> Habit:
        """
        Record today's completion with an optimistic write.

        The update only lands if the document is unchanged since it was read,
        so two concurrent requests cannot both pass the same-day check. A lost
        race re-reads and tries again; the loser then sees the winner's
        completion and gets AlreadyCompletedToday.
        """
        ref = self.db.collection(HABITS).document(habit_id)
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            snap = ref.get()
            habit = mark_complete(self._owned(snap, owner_id), now)
            try:
                ref.update(habit.streak_state(),
                           option=self.db.write_option(last_update_time=snap.update_time))
                return habit
            except FailedPrecondition:
                logger.warning("[complete_habit] habit %s changed during write (attempt %d/%d)",
                               habit_id, attempt, MAX_WRITE_ATTEMPTS)
        raise ConcurrentUpdate()
