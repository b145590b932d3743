from __future__ import annotations

from flask import abort, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from smartmarks.services.bookmarks import (
    BookmarkValidationError,
    create_bookmark,
    delete_bookmark,
    get_user_bookmark,
    list_user_bookmarks,
)
from smartmarks.services.gate import DASHBOARD_VIEW, LANDING_VIEW, gate_redirect
from smartmarks.web import web_bp

VIEW_ENDPOINTS = {
    LANDING_VIEW: "web.landing",
    DASHBOARD_VIEW: "web.dashboard",
}


def _current_identity():
    if current_user.is_authenticated:
        return current_user
    return None


def _gate(view: str):
    target = gate_redirect(view, _current_identity())
    if target:
        return redirect(url_for(VIEW_ENDPOINTS[target]))
    return None


@web_bp.route("/")
def landing():
    redirect_response = _gate(LANDING_VIEW)
    if redirect_response:
        return redirect_response
    return render_template("landing.html")


@web_bp.route("/dashboard")
def dashboard():
    redirect_response = _gate(DASHBOARD_VIEW)
    if redirect_response:
        return redirect_response
    return render_template(
        "dashboard.html",
        user=current_user,
        greeting=current_user.display_name or current_user.username,
        items=list_user_bookmarks(current_user.id),
        form_title=request.args.get("title", ""),
        form_url=request.args.get("url", ""),
    )


@web_bp.route("/bookmarks/new", methods=["POST"])
@login_required
def bookmarks_new():
    title = request.form.get("title") or ""
    url = request.form.get("url") or ""
    try:
        create_bookmark(current_user.id, title, url)
    except BookmarkValidationError as exc:
        flash(str(exc), "error")
        # Keep the entered values so the user can resubmit.
        return redirect(url_for("web.dashboard", title=title, url=url))
    flash("Bookmark added successfully!", "success")
    return redirect(url_for("web.dashboard"))


@web_bp.route("/bookmarks/<int:bookmark_id>/delete", methods=["POST"])
@login_required
def bookmarks_delete(bookmark_id: int):
    item = get_user_bookmark(current_user.id, bookmark_id)
    if not item:
        abort(404)
    delete_bookmark(item)
    flash("Bookmark deleted!", "success")
    return redirect(url_for("web.dashboard"))
