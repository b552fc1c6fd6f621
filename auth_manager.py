# auth_manager.py
import logging
import re
from datetime import datetime, timedelta, timezone
from functools import wraps

from flask import current_app, g, request
from jose import JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from errors import AuthRequired, NotFound, ValidationFailure

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_COOKIE = "access_token"
MIN_PASSWORD_LENGTH = 8


def get_store():
    """The user/habit store the running app was configured with."""
    return current_app.extensions["habit_store"]


def public_user(user):
    """User document without the password hash."""
    return {k: v for k, v in user.items() if k != "password"}


def request_json():
    """Request body as a dict (JSON or form); anything else is a ValidationFailure."""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict(flat=True)
    if not isinstance(data, dict):
        raise ValidationFailure("Request body must be a JSON object")
    return data


def _require_strings(**fields):
    for name, value in fields.items():
        if not isinstance(value, str):
            raise ValidationFailure(f"{name} must be a string")


class AuthManager:
    @staticmethod
    def validate_email(email):
        """Validate email format"""
        pattern = r'^[^\s@]+@[^\s@]+\.[^\s@]+$'
        return bool(re.match(pattern, email))

    @staticmethod
    def validate_password(password):
        """Validate password strength"""
        if len(password) < MIN_PASSWORD_LENGTH:
            return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        if not (re.search(r'[a-zA-Z]', password) and re.search(r'[0-9]', password)):
            return False, "Password must contain at least one letter and one number."
        return True, "Password is valid"

    @staticmethod
    def sign_up(store, username, email, password):
        """Create a new account; returns the new user id."""
        if not username or not email or not password:
            raise ValidationFailure("All fields are required!")
        _require_strings(username=username, email=email, password=password)
        username, email = username.strip(), email.strip().lower()

        if not AuthManager.validate_email(email):
            raise ValidationFailure("Invalid email format.")

        password_valid, msg = AuthManager.validate_password(password)
        if not password_valid:
            raise ValidationFailure(msg)

        if store.find_user_by_email(email):
            raise ValidationFailure("Email already registered")
        if store.find_user_by_username(username):
            raise ValidationFailure("Username already taken")

        now = datetime.now(timezone.utc)
        user_id = store.add_user({
            "username": username,
            "email": email,
            "password": generate_password_hash(password),
            "createdAt": now,
            "updatedAt": now,
        })
        logger.info("[sign_up] created user %s (%s)", user_id, email)
        return user_id

    @staticmethod
    def sign_in(store, email, password):
        """Check credentials; returns the stored user (with hash)."""
        if not email or not password:
            raise ValidationFailure("All fields are required!")
        _require_strings(email=email, password=password)

        user = store.find_user_by_email(email.strip().lower())
        if not user:
            raise NotFound("Invalid credentials!")
        if not check_password_hash(user["password"], password):
            raise ValidationFailure("Invalid credentials!")
        return user

    @staticmethod
    def create_access_token(user_id, ttl_seconds):
        """Signed token for ``user_id`` and its expiry in epoch milliseconds."""
        expire = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        token = jwt.encode({"id": user_id, "exp": expire},
                           current_app.config["SECRET_KEY"], algorithm=ALGORITHM)
        return token, int(expire.timestamp() * 1000)

    @staticmethod
    def verify_access_token(token):
        """Return the user id inside ``token`` or raise AuthRequired."""
        try:
            payload = jwt.decode(token, current_app.config["SECRET_KEY"], algorithms=[ALGORITHM])
        except JWTError as e:
            logger.info("[verify_access_token] rejected token: %s", e)
            raise AuthRequired("Invalid or expired token")
        user_id = payload.get("id")
        if not user_id:
            raise AuthRequired("Invalid or expired token")
        return user_id


def _token_from_request():
    token = request.cookies.get(TOKEN_COOKIE)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip()
    return None


def require_auth(view):
    """Reject the request with 401 unless it carries a valid access token; sets g.user_id."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = _token_from_request()
        if not token:
            raise AuthRequired()
        g.user_id = AuthManager.verify_access_token(token)
        return view(*args, **kwargs)
    return wrapper
