# config.py
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Settings read from the environment (.env is honoured)."""

    def __init__(self):
        self.SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-this-in-production")
        self.FIREBASE_CREDENTIALS = os.getenv("FIREBASE_CREDENTIALS", "firebase-credentials.json")
        self.USE_FIRESTORE = _env_bool("USE_FIRESTORE", default=True)
        # used only when Firestore is off or unreachable
        self.STORAGE_FILE = os.getenv("STORAGE_FILE", "local_habits.json")
        self.TOKEN_TTL_SECONDS = int(os.getenv("TOKEN_TTL_SECONDS", "3600"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.PORT = int(os.getenv("PORT", "5000"))
        self.COOKIE_SECURE = _env_bool("COOKIE_SECURE", default=False)

    def as_dict(self):
        return {key: value for key, value in vars(self).items() if key.isupper()}
