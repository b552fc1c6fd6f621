# errors.py
"""Domain errors raised by the request layer and rendered as JSON by web_app."""


class HabitHiveError(Exception):
    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"success": False, "error": self.message}


class ValidationFailure(HabitHiveError):
    """Malformed or missing input."""
    status_code = 400


class InvalidPeriod(HabitHiveError):
    """Statistics window that is not a positive number of days."""
    status_code = 400


class AlreadyCompletedToday(HabitHiveError):
    status_code = 400

    def __init__(self, message="Habit already completed today"):
        super().__init__(message)


class AuthRequired(HabitHiveError):
    status_code = 401

    def __init__(self, message="Unauthorized"):
        super().__init__(message)


class NotFound(HabitHiveError):
    """The document does not exist or is not owned by the caller."""
    status_code = 404


class ConcurrentUpdate(HabitHiveError):
    status_code = 409

    def __init__(self, message="Habit was modified concurrently, please retry"):
        super().__init__(message)
