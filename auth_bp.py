# auth_bp.py
import logging

from flask import Blueprint, current_app, g, jsonify

from auth_manager import (TOKEN_COOKIE, AuthManager, get_store, public_user,
                          request_json, require_auth)
from errors import NotFound

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)


def _clear_token(resp):
    resp.delete_cookie(TOKEN_COOKIE, httponly=True, samesite="Lax",
                       secure=current_app.config["COOKIE_SECURE"])
    return resp


@auth_bp.route("/signup", methods=["POST"])
def signup():
    data = request_json()
    AuthManager.sign_up(get_store(), data.get("username"), data.get("email"), data.get("password"))
    return jsonify({"success": True, "message": "Signup successful!"}), 201


@auth_bp.route("/signin", methods=["POST"])
def signin():
    data = request_json()
    user = AuthManager.sign_in(get_store(), data.get("email"), data.get("password"))

    token, expires_at = AuthManager.create_access_token(
        user["id"], current_app.config["TOKEN_TTL_SECONDS"])
    logger.info("[signin] %s signed in", user["id"])

    body = public_user(user)
    body.update({"_id": user["id"], "token": token, "expiresAt": expires_at})
    resp = jsonify(body)
    resp.set_cookie(TOKEN_COOKIE, token, httponly=True, samesite="Lax",
                    secure=current_app.config["COOKIE_SECURE"],
                    max_age=current_app.config["TOKEN_TTL_SECONDS"])
    return resp, 200


@auth_bp.route("/logout", methods=["POST"])
def logout():
    resp = jsonify({"success": True, "message": "Signed out successfully."})
    return _clear_token(resp), 200


@auth_bp.route("/delete-profile", methods=["DELETE"])
@require_auth
def delete_profile():
    store = get_store()
    if not store.delete_user(g.user_id):
        raise NotFound("User not found")
    removed = store.delete_habits_for_owner(g.user_id)
    logger.info("[delete_profile] deleted user %s and %d habits", g.user_id, removed)

    resp = jsonify({"success": True, "message": "Account deleted successfully."})
    return _clear_token(resp), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    user = get_store().get_user(g.user_id)
    if not user:
        raise NotFound("User not found")
    data = public_user(user)
    data["_id"] = user["id"]
    return jsonify({"success": True, "data": data}), 200
