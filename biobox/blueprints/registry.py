"""
Rotas dos cadastros: clientes, produtos e usuários.
As três coleções têm o mesmo CRUD; só muda o serviço e o módulo de permissão.
"""

from flask import Blueprint, g

from biobox.models.permissions import Action, Module
from biobox.utils.errors import error_response
from .helpers import json_body, login_required, ok, require_permission, services


def build_crud_blueprint(name: str, module: Module, item_key: str) -> Blueprint:
    """
    Args:
        name: nome do blueprint e do serviço em ``Services``
        module: módulo usado na checagem de permissão das rotas
        item_key: chave do registro nas respostas (``customer``, ``product``...)
    """
    bp = Blueprint(name, __name__)

    def _service():
        return getattr(services(), name)

    @bp.get("/")
    @require_permission(module, Action.VIEW)
    def list_items():
        items = [e.to_record() for e in _service().list(g.user)]
        return ok(items=items, total=len(items))

    @bp.post("/")
    @login_required
    def create_item():
        entity = _service().create(g.user, json_body())
        return ok(201, **{item_key: entity.to_record()})

    @bp.get("/<record_id>")
    @require_permission(module, Action.VIEW)
    def get_item(record_id):
        return ok(**{item_key: _service().get(g.user, record_id).to_record()})

    @bp.put("/<record_id>")
    @require_permission(module, Action.EDIT)
    def update_item(record_id):
        entity = _service().update(g.user, record_id, json_body())
        return ok(**{item_key: entity.to_record()})

    @bp.delete("/<record_id>")
    @require_permission(module, Action.DELETE)
    def delete_item(record_id):
        if not _service().delete(g.user, record_id):
            return error_response("Não foi possível remover o registro", 500)
        return ok(deleted=record_id)

    return bp


customers_bp = build_crud_blueprint("customers", Module.CUSTOMERS, "customer")
products_bp = build_crud_blueprint("products", Module.PRODUCTS, "product")
users_bp = build_crud_blueprint("users", Module.USERS, "user")
