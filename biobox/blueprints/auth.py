# biobox/blueprints/auth.py
from flask import Blueprint, g, session

from biobox.models.permissions import granted_permissions
from .helpers import SESSION_USER_ID, json_body, login_required, ok, services

auth_bp = Blueprint("auth", __name__)


def _session_payload(user):
    return {
        "user": user.to_record(),
        "granted": [p.token for p in granted_permissions(user)],
    }


@auth_bp.post("/login")
def login():
    data = json_body()
    user = services().sessions.login((data.get("email") or "").strip(), data.get("password") or "")
    session.clear()
    session[SESSION_USER_ID] = user.id
    return ok(**_session_payload(user))


@auth_bp.post("/logout")
def logout():
    services().sessions.logout(session.pop(SESSION_USER_ID, None))
    return ok(message="Sessão encerrada")


@auth_bp.get("/me")
@login_required
def me():
    return ok(**_session_payload(g.user))
