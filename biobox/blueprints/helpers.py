# biobox/blueprints/helpers.py
from functools import wraps

from flask import current_app, g, jsonify, request, session

from biobox.exceptions import AuthenticationError
from biobox.services import Services, get_services

SESSION_USER_ID = "user_id"


def services() -> Services:
    return get_services(current_app)


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def ok(status_code: int = 200, **payload):
    return jsonify({'success': True, **payload}), status_code


def _session_user_id() -> str:
    user_id = session.get(SESSION_USER_ID)
    if not user_id:
        raise AuthenticationError("Usuário não autenticado")
    return user_id


def login_required(view):
    """Exige sessão (cookie assinado); o usuário fica em ``g.user``."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        user = services().sessions.resolve(_session_user_id())
        if user is None:
            session.pop(SESSION_USER_ID, None)
            raise AuthenticationError("Usuário não autenticado")
        g.user = user
        return view(*args, **kwargs)
    return wrapper


def require_permission(module, action):
    """Confere a permissão antes de mostrar/executar a ação."""
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            g.user = services().sessions.require(module, action, user_id=_session_user_id())
            return view(*args, **kwargs)
        return wrapper
    return decorator
