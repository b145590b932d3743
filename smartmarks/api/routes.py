from __future__ import annotations

import time

from flask import current_app, g, jsonify, request

from smartmarks.api import api_bp
from smartmarks.extensions import db
from smartmarks.models import BOOKMARKS_TABLE, ApiToken, User, utcnow
from smartmarks.services.bookmarks import (
    BookmarkValidationError,
    create_bookmark,
    delete_bookmark,
    get_user_bookmark,
    list_user_bookmarks,
    update_bookmark,
)
from smartmarks.services.changes import (
    SUBSCRIBABLE_TABLES,
    ChangeFilterError,
    fetch_changes,
    head_cursor,
    parse_event_kinds,
    parse_row_filter,
)
from smartmarks.services.security import api_auth_required


def _get_user_bookmark_or_404(user_id: int, bookmark_id: int):
    bookmark = get_user_bookmark(user_id, bookmark_id)
    if not bookmark:
        return None, (jsonify({"error": "bookmark not found"}), 404)
    return bookmark, None


def _json_object():
    """Return the request body when it is a JSON object, else None."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    return payload if isinstance(payload, dict) else None


def _json_object_error():
    return jsonify({"error": "request body must be a JSON object"}), 400


def _owner_mismatch(payload: dict, user_id: int) -> bool:
    claimed = payload.get("user_id")
    if claimed is None:
        return False
    try:
        return int(claimed) != user_id
    except (TypeError, ValueError):
        return True


def _subscription_params(user_id: int, source: dict):
    """Validate table/filter/event for a change subscription.

    Returns ``(kinds, error_response)``.
    """
    table = source.get("table") or BOOKMARKS_TABLE
    if not isinstance(table, str):
        return None, (jsonify({"error": "table must be a string"}), 400)
    table = table.strip()
    if table not in SUBSCRIBABLE_TABLES:
        return None, (jsonify({"error": f"unknown table: {table}"}), 400)
    try:
        kinds = parse_event_kinds(source.get("event"))
        raw_filter = source.get("filter")
        if raw_filter:
            _, filter_user_id = parse_row_filter(raw_filter)
        else:
            filter_user_id = user_id
    except ChangeFilterError as exc:
        return None, (jsonify({"error": str(exc)}), 400)
    if filter_user_id != user_id:
        return None, (jsonify({"error": "cannot subscribe to another user"}), 403)
    return kinds, None


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "Smart Bookmarks"})


@api_bp.route("/auth/token", methods=["POST"])
def create_token_with_credentials():
    payload = _json_object()
    if payload is None:
        return _json_object_error()
    username = payload.get("username") or ""
    password = payload.get("password") or ""
    token_name = payload.get("token_name") or "Smart Bookmarks client"
    if not all(isinstance(value, str) for value in (username, password, token_name)):
        return jsonify({"error": "invalid credentials"}), 401
    username = username.strip()
    token_name = token_name.strip()

    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not user.check_password(password):
        return jsonify({"error": "invalid credentials"}), 401

    token, token_hash = ApiToken.issue_token()
    row = ApiToken(user_id=user.id, name=token_name, token_hash=token_hash)
    db.session.add(row)
    db.session.commit()
    return jsonify({"token": token, "token_name": token_name, "user": user.as_identity()})


@api_bp.route("/auth/token", methods=["DELETE"])
@api_auth_required
def revoke_token():
    token_row = g.api_token
    if token_row is None:
        return jsonify({"error": "bearer token required"}), 400
    token_row.revoked_at = utcnow()
    db.session.commit()
    return jsonify({"status": "revoked"})


@api_bp.route("/me")
@api_auth_required
def me():
    return jsonify(g.api_user.as_identity())


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required
def bookmarks_list_api():
    user = g.api_user
    items = list_user_bookmarks(user.id)
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required
def bookmarks_create_api():
    user = g.api_user
    payload = _json_object()
    if payload is None:
        return _json_object_error()
    if _owner_mismatch(payload, user.id):
        return jsonify({"error": "cannot create bookmarks for another user"}), 403

    try:
        bookmark = create_bookmark(user.id, payload.get("title"), payload.get("url"))
    except BookmarkValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(bookmark.as_dict()), 201


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["GET"])
@api_auth_required
def bookmarks_get_api(bookmark_id: int):
    user = g.api_user
    bookmark, error = _get_user_bookmark_or_404(user.id, bookmark_id)
    if error:
        return error
    return jsonify(bookmark.as_dict())


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["PATCH"])
@api_auth_required
def bookmarks_update_api(bookmark_id: int):
    user = g.api_user
    bookmark, error = _get_user_bookmark_or_404(user.id, bookmark_id)
    if error:
        return error

    payload = _json_object()
    if payload is None:
        return _json_object_error()
    try:
        update_bookmark(bookmark, title=payload.get("title"), url=payload.get("url"))
    except BookmarkValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(bookmark.as_dict())


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["DELETE"])
@api_auth_required
def bookmarks_delete_api(bookmark_id: int):
    user = g.api_user
    bookmark, error = _get_user_bookmark_or_404(user.id, bookmark_id)
    if error:
        return error

    old_record = delete_bookmark(bookmark)
    return jsonify({"status": "deleted", "bookmark": old_record})


@api_bp.route("/changes/subscribe", methods=["POST"])
@api_auth_required
def changes_subscribe():
    user = g.api_user
    payload = _json_object()
    if payload is None:
        return _json_object_error()
    _, error = _subscription_params(user.id, payload)
    if error:
        return error
    cursor = head_cursor(user.id)
    current_app.logger.info(
        "change subscription opened for user %s at cursor %s", user.id, cursor
    )
    return jsonify({"status": "SUBSCRIBED", "cursor": cursor})


@api_bp.route("/changes", methods=["GET"])
@api_auth_required
def changes_pull():
    user_id = g.api_user.id
    kinds, error = _subscription_params(user_id, request.args)
    if error:
        return error

    since = request.args.get("since", default=0, type=int)
    page_size = current_app.config["CHANGE_FEED_PAGE_SIZE"]
    limit = request.args.get("limit", default=page_size, type=int)
    limit = max(1, min(limit, page_size))
    wait = request.args.get("wait", default=0.0, type=float)
    wait = max(0.0, min(wait, current_app.config["CHANGE_FEED_MAX_WAIT_SECONDS"]))
    interval = current_app.config["CHANGE_FEED_POLL_INTERVAL"]
    table = (request.args.get("table") or BOOKMARKS_TABLE).strip()

    deadline = time.monotonic() + wait
    while True:
        events, cursor, has_more = fetch_changes(
            user_id, since, limit, table_name=table, kinds=kinds
        )
        if events or cursor != since or time.monotonic() >= deadline:
            break
        # End the read transaction so the next poll sees fresh commits.
        db.session.rollback()
        time.sleep(interval)

    return jsonify(
        {
            "events": [event.as_dict() for event in events],
            "cursor": cursor,
            "has_more": has_more,
        }
    )
