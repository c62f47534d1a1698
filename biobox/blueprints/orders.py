# biobox/blueprints/orders.py
from flask import Blueprint, Response, g, request

from biobox.models.entities import STATUS_LABELS
from biobox.models.permissions import Action, Module, has_permission
from biobox.services.fragment_service import fragment_progress, released_value, all_fragments_completed
from biobox.services.order_lifecycle import TRANSITION_PERMISSIONS, allowed_transitions
from biobox.services.report_service import csv_filename, export_orders_csv, filter_orders
from biobox.utils.errors import error_response
from .helpers import json_body, ok, require_permission, services

orders_bp = Blueprint("orders", __name__)


def _serialize(order):
    data = order.to_record()
    if order.is_fragmented:
        data["fragment_progress"] = fragment_progress(order)
        data["released_value"] = released_value(order)
        data["fragments_completed"] = all_fragments_completed(order)
    return data


def _transitions_for(user, order):
    """Destinos permitidos pela máquina de estados e pelas permissões do usuário."""
    out = []
    for status in allowed_transitions(order.status):
        permission = TRANSITION_PERMISSIONS.get(status)
        if permission is None or has_permission(user, permission.module, permission.action):
            out.append({"status": status.value, "label": STATUS_LABELS[status]})
    return out


def _filtered_orders():
    orders = services().orders.list_orders(g.user)
    return filter_orders(
        orders,
        status=request.args.get("status"),
        priority=request.args.get("priority"),
        search=request.args.get("search"),
    )


@orders_bp.get("/")
@require_permission(Module.ORDERS, Action.VIEW)
def list_orders():
    items = [_serialize(o) for o in _filtered_orders()]
    return ok(items=items, total=len(items))


@orders_bp.post("/")
@require_permission(Module.ORDERS, Action.CREATE)
def create_order():
    order = services().orders.create_order(g.user, json_body())
    return ok(201, order=_serialize(order))


@orders_bp.get("/export.csv")
@require_permission(Module.ORDERS, Action.VIEW)
def export_csv():
    content = export_orders_csv(_filtered_orders())
    return Response(
        content,
        mimetype="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{csv_filename()}"'},
    )


@orders_bp.get("/<order_id>")
@require_permission(Module.ORDERS, Action.VIEW)
def get_order(order_id):
    order = services().orders.get_order(g.user, order_id)
    return ok(order=_serialize(order), transitions=_transitions_for(g.user, order))


@orders_bp.put("/<order_id>")
@require_permission(Module.ORDERS, Action.EDIT)
def update_order(order_id):
    order = services().orders.update_order(g.user, order_id, json_body())
    return ok(order=_serialize(order))


@orders_bp.delete("/<order_id>")
@require_permission(Module.ORDERS, Action.DELETE)
def delete_order(order_id):
    deleted = services().orders.delete_order(g.user, order_id)
    if not deleted:
        return error_response("Não foi possível remover o pedido", 500)
    return ok(deleted=order_id)


@orders_bp.patch("/<order_id>/products/<line_id>")
@require_permission(Module.ORDERS, Action.EDIT)
def update_line_item(order_id, line_id):
    data = json_body()
    order = services().orders.update_line_item(
        g.user, order_id, line_id,
        quantity=data.get("quantity"),
        unit_price=data.get("unit_price"),
    )
    return ok(order=_serialize(order))


@orders_bp.post("/<order_id>/transition")
@require_permission(Module.ORDERS, Action.VIEW)
def transition(order_id):
    data = json_body()
    order = services().lifecycle.transition(
        g.user, order_id, data.get("status"),
        operator=data.get("operator"),
        notes=data.get("notes"),
        cancel_reason=data.get("cancel_reason"),
        cancel_reason_code=data.get("cancel_reason_code"),
    )
    return ok(order=_serialize(order))


@orders_bp.post("/<order_id>/advance")
@require_permission(Module.ORDERS, Action.ADVANCE)
def advance(order_id):
    data = json_body()
    order = services().lifecycle.advance(g.user, order_id, operator=data.get("operator"), notes=data.get("notes"))
    return ok(order=_serialize(order))


@orders_bp.post("/<order_id>/cancel")
@require_permission(Module.ORDERS, Action.CANCEL)
def cancel(order_id):
    data = json_body()
    order = services().lifecycle.cancel(
        g.user, order_id, data.get("reason"),
        reason_code=data.get("reason_code"),
        notes=data.get("notes"),
    )
    return ok(order=_serialize(order))


@orders_bp.post("/<order_id>/issue")
@require_permission(Module.ORDERS, Action.EDIT)
def report_issue(order_id):
    data = json_body()
    order = services().lifecycle.report_issue(g.user, order_id, data.get("description"), notes=data.get("notes"))
    return ok(order=_serialize(order))


@orders_bp.put("/<order_id>/fragments")
@require_permission(Module.ORDERS, Action.EDIT)
def save_fragments(order_id):
    order = services().fragments.save_fragments(g.user, order_id, json_body().get("fragments"))
    return ok(order=_serialize(order))


@orders_bp.post("/<order_id>/fragments/<fragment_id>/start")
@require_permission(Module.ORDERS, Action.ADVANCE)
def start_fragment(order_id, fragment_id):
    order = services().fragments.start_fragment(g.user, order_id, fragment_id, operator=json_body().get("operator"))
    return ok(order=_serialize(order))


@orders_bp.post("/<order_id>/fragments/<fragment_id>/complete")
@require_permission(Module.ORDERS, Action.ADVANCE)
def complete_fragment(order_id, fragment_id):
    order = services().fragments.complete_fragment(g.user, order_id, fragment_id)
    return ok(order=_serialize(order))
