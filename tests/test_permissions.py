import pytest

from biobox.models.entities import AuthUser, UserRole
from biobox.models.permissions import (
    Action, Module, Permission, granted_permissions, has_permission,
)

ORDER_CRUD = ("view", "create", "edit", "delete")


def _user(*tokens, role=UserRole.SELLER):
    return AuthUser(id="u1", name="U", email="u@x.com", role=role, permissions=list(tokens))


@pytest.mark.parametrize("action", ORDER_CRUD)
def test_orders_full_grants_order_crud(action):
    assert has_permission(_user("orders-full"), "orders", action)


@pytest.mark.parametrize("action", ORDER_CRUD)
def test_no_tokens_grants_nothing(action):
    assert not has_permission(_user(), "orders", action)


def test_no_user_is_denied():
    assert not has_permission(None, Module.ORDERS, Action.VIEW)


def test_admin_short_circuits():
    admin = _user(role=UserRole.ADMIN)
    assert all(has_permission(admin, m, a) for m in Module for a in Action)


def test_all_token_grants_everything():
    user = _user("all")
    assert has_permission(user, Module.USERS, Action.DELETE)
    assert has_permission(user, Module.SETTINGS, Action.VIEW)


def test_legacy_tokens_through_compatibility_map():
    assert has_permission(_user("orders:read"), Module.ORDERS, Action.VIEW)
    assert has_permission(_user("orders:edit"), Module.ORDERS, Action.APPROVE)
    assert has_permission(_user("orders:delete"), Module.ORDERS, Action.CANCEL)
    assert has_permission(_user("production-manage"), Module.PRODUCTION, Action.VIEW)
    assert has_permission(_user("customers:read"), Module.CUSTOMERS, Action.VIEW)
    assert not has_permission(_user("orders:read"), Module.ORDERS, Action.EDIT)


def test_module_full_token_only_covers_its_module():
    user = _user("customers-full")
    assert has_permission(user, Module.CUSTOMERS, Action.DELETE)
    assert not has_permission(user, Module.ORDERS, Action.VIEW)


def test_unknown_module_or_action_is_denied():
    assert not has_permission(_user("all"), "inventory", "view")


def test_permission_parse():
    assert Permission.parse("orders:view") == Permission(Module.ORDERS, Action.VIEW)
    assert Permission.parse("orders-full") is None
    assert Permission.parse("orders:fly") is None


def test_granted_permissions_lists_pairs():
    tokens = {p.token for p in granted_permissions(_user("orders:read"))}
    assert tokens == {"orders:view"}


def test_legacy_permission_objects_are_converted():
    user = AuthUser.from_record({"id": "u2", "role": "seller",
                                 "permissions": [{"id": "orders-full", "module": "orders"}, "customers:view"]})
    assert user.permissions == ["orders-full", "customers:view"]
    assert has_permission(user, Module.ORDERS, Action.DELETE)
