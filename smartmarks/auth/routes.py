from flask import current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required, login_user, logout_user
from itsdangerous import BadData, URLSafeTimedSerializer

from smartmarks.extensions import db
from smartmarks.auth import auth_bp
from smartmarks.models import User


def _code_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(
        secret_key=current_app.config["SECRET_KEY"], salt="auth-callback"
    )


def issue_callback_code(user: User) -> str:
    return _code_serializer().dumps({"user_id": user.id})


def resolve_callback_code(code: str) -> User | None:
    try:
        payload = _code_serializer().loads(
            code, max_age=current_app.config["AUTH_CALLBACK_MAX_AGE_SECONDS"]
        )
    except BadData:
        return None
    user = db.session.get(User, payload.get("user_id"))
    if not user or not user.is_active:
        return None
    return user


@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    if current_user.is_authenticated:
        return redirect(url_for("web.dashboard"))

    if request.method == "POST":
        username = (request.form.get("username") or "").strip()
        password = request.form.get("password") or ""

        user = User.query.filter_by(username=username).first()
        if user and user.is_active and user.check_password(password):
            return redirect(url_for("auth.callback", code=issue_callback_code(user)))
        flash("Invalid credentials.", "error")

    return render_template("login.html")


@auth_bp.route("/callback")
def callback():
    user = resolve_callback_code(request.args.get("code") or "")
    if not user:
        current_app.logger.warning("rejected sign-in callback with invalid code")
        flash("Sign-in failed, please try again.", "error")
        return redirect(url_for("web.landing"))
    login_user(user)
    return redirect(url_for("web.dashboard"))


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return redirect(url_for("web.landing"))
