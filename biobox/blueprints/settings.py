# biobox/blueprints/settings.py
import logging

from flask import Blueprint, g

from biobox.exceptions import PermissionDeniedError
from biobox.models.permissions import Action, Module
from biobox.services.backup_service import backup_filename, create_backup, restore_backup
from biobox.services.report_service import order_metrics
from biobox.services.settings_service import SYSTEM_SCOPE, user_scope
from .helpers import json_body, login_required, ok, require_permission, services

logger = logging.getLogger(__name__)

settings_bp = Blueprint("settings", __name__)
dashboard_bp = Blueprint("dashboard", __name__)


def _require_admin():
    if not g.user.is_admin:
        raise PermissionDeniedError("Somente administradores alteram esta configuração")


@settings_bp.get("/system")
@require_permission(Module.SETTINGS, Action.VIEW)
def get_system_settings():
    return ok(settings=services().settings.get_settings(SYSTEM_SCOPE))


@settings_bp.put("/system")
@login_required
def save_system_settings():
    _require_admin()
    return ok(settings=services().settings.save_settings(SYSTEM_SCOPE, json_body()))


@settings_bp.get("/me")
@login_required
def get_user_settings():
    return ok(settings=services().settings.get_settings(user_scope(g.user.id)))


@settings_bp.put("/me")
@login_required
def save_user_settings():
    return ok(settings=services().settings.save_settings(user_scope(g.user.id), json_body()))


@settings_bp.get("/backup")
@login_required
def backup():
    _require_admin()
    payload = create_backup(services().gateway)
    svc = services().settings
    svc.save_settings(SYSTEM_SCOPE, {"lastBackup": payload["meta"]["generatedAt"]})
    return ok(backup=payload, filename=backup_filename(payload["meta"]["generatedAt"]))


@settings_bp.post("/restore")
@login_required
def restore():
    _require_admin()
    svc = services()
    restored = restore_backup(svc.cache, json_body())
    logger.info(f"Restauração feita por {g.user.email}")
    return ok(restored=restored)


@dashboard_bp.get("/metrics")
@require_permission(Module.DASHBOARD, Action.VIEW)
def metrics():
    # mesmo recorte da listagem (vendedor só vê os próprios pedidos)
    orders = services().gateway.orders.list_for(g.user)
    return ok(metrics=order_metrics(orders))


@dashboard_bp.get("/activities")
@require_permission(Module.DASHBOARD, Action.VIEW)
def activities():
    return ok(items=services().activities.recent())
