from __future__ import annotations

LANDING_VIEW = "landing"
DASHBOARD_VIEW = "dashboard"

PROTECTED_VIEWS = {DASHBOARD_VIEW}
PUBLIC_VIEWS = {LANDING_VIEW}


def gate_redirect(view: str, identity) -> str | None:
    """Pick the view a visitor should be sent to, or None to stay put.

    ``identity`` is whatever the identity provider resolved; any falsy value
    (including a lookup that failed) is treated as signed out.
    """
    if view in PROTECTED_VIEWS and not identity:
        return LANDING_VIEW
    if view in PUBLIC_VIEWS and identity:
        return DASHBOARD_VIEW
    return None
