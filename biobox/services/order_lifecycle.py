"""
Máquina de estados do pedido.

Uma única tabela define as transições permitidas, o progresso fixo de cada
status e a permissão exigida para entrar nele. Toda tela que muda o status
de um pedido passa por aqui.
"""

from datetime import datetime
from typing import Dict, Any, Optional, Tuple
import logging

from biobox.exceptions import (
    InvalidTransitionError, NotFoundError, OrderUpdateError, ValidationError,
)
from biobox.models.entities import Order, OrderStatus, STATUS_LABELS
from biobox.models.permissions import Action, Module, Permission
from biobox.services.activity_logger import ActionType
from biobox.services.auth_service import ensure_permission
from biobox.utils.normalize import format_iso, now_iso

logger = logging.getLogger(__name__)

PROGRESS_BY_STATUS: Dict[OrderStatus, int] = {
    OrderStatus.AWAITING_APPROVAL: 0,
    OrderStatus.PENDING: 0,
    OrderStatus.CONFIRMED: 10,
    OrderStatus.IN_PRODUCTION: 50,
    OrderStatus.QUALITY_CHECK: 80,
    OrderStatus.READY: 95,
    OrderStatus.DELIVERED: 100,
    OrderStatus.CANCELLED: 0,
}

# O primeiro destino de cada status é o "avançar" do fluxo
TRANSITIONS: Dict[OrderStatus, Tuple[OrderStatus, ...]] = {
    OrderStatus.AWAITING_APPROVAL: (OrderStatus.CONFIRMED,),
    OrderStatus.PENDING: (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    OrderStatus.CONFIRMED: (OrderStatus.IN_PRODUCTION, OrderStatus.CANCELLED),
    OrderStatus.IN_PRODUCTION: (OrderStatus.QUALITY_CHECK, OrderStatus.CANCELLED),
    OrderStatus.QUALITY_CHECK: (OrderStatus.READY,),
    OrderStatus.READY: (OrderStatus.DELIVERED,),
    OrderStatus.DELIVERED: (),
    OrderStatus.CANCELLED: (),
}

TRANSITION_PERMISSIONS: Dict[OrderStatus, Permission] = {
    OrderStatus.CONFIRMED: Permission(Module.ORDERS, Action.APPROVE),
    OrderStatus.IN_PRODUCTION: Permission(Module.ORDERS, Action.ADVANCE),
    OrderStatus.QUALITY_CHECK: Permission(Module.ORDERS, Action.ADVANCE),
    OrderStatus.READY: Permission(Module.ORDERS, Action.ADVANCE),
    OrderStatus.DELIVERED: Permission(Module.ORDERS, Action.DELIVER),
    OrderStatus.CANCELLED: Permission(Module.ORDERS, Action.CANCEL),
}

# Motivos sugeridos na tela de cancelamento; o motivo em si é texto livre
CANCEL_REASONS = (
    "Cliente cancelou",
    "Falta de material",
    "Problema na produção",
    "Erro no pedido",
    "Outro",
)


def _status(value) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"Status desconhecido: {value}", status=value)


def progress_for(status) -> int:
    return PROGRESS_BY_STATUS[_status(status)]


def allowed_transitions(status) -> Tuple[OrderStatus, ...]:
    return TRANSITIONS[_status(status)]


def can_transition(current, target) -> bool:
    return _status(target) in allowed_transitions(current)


def next_status(status) -> Optional[OrderStatus]:
    """Próximo status do fluxo normal (sem cancelamento); ``None`` se terminal."""
    for candidate in allowed_transitions(status):
        if candidate != OrderStatus.CANCELLED:
            return candidate
    return None


def _join_notes(prefix: str, notes: Optional[str]) -> str:
    return f"{prefix} {notes or ''}".rstrip()


def plan_transition(order: Order, target, operator: Optional[str] = None, notes: Optional[str] = None,
                    cancel_reason: Optional[str] = None, cancel_reason_code: Optional[str] = None,
                    now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Monta a alteração parcial de uma transição, sem gravar nada e sem
    alterar ``order``.

    Raises:
        InvalidTransitionError: transição fora da tabela
        ValidationError: cancelamento sem motivo
    """
    target = _status(target)
    if not can_transition(order.status, target):
        raise InvalidTransitionError(
            f"Transição inválida: {order.status.value} -> {target.value}",
            current=order.status.value, target=target.value,
        )

    patch: Dict[str, Any] = {
        "status": target.value,
        "production_progress": PROGRESS_BY_STATUS[target],
    }
    if notes:
        patch["notes"] = notes
    if operator:
        patch["assigned_operator"] = operator

    if target == OrderStatus.DELIVERED:
        patch["completed_date"] = format_iso(now) if now else now_iso()
    elif target == OrderStatus.CANCELLED:
        reason = (cancel_reason or "").strip()
        if not reason:
            raise ValidationError("Informe o motivo do cancelamento")
        patch["cancel_reason"] = reason
        if cancel_reason_code:
            patch["cancel_reason_code"] = cancel_reason_code
        patch["notes"] = _join_notes(f"Cancelado: {reason}.", notes or order.notes)
    return patch


def plan_issue(order: Order, description: str, notes: Optional[str] = None) -> Dict[str, Any]:
    """Registra um problema no pedido mantendo o status atual."""
    description = (description or "").strip()
    if not description:
        raise ValidationError("Descreva o problema")
    return {"notes": _join_notes(f"PROBLEMA: {description}.", notes or order.notes)}


class OrderLifecycleService:
    """Executa transições: confere permissão, grava via gateway e registra a atividade."""

    def __init__(self, gateway, activities):
        self.gateway = gateway
        self.activities = activities

    def _load(self, order_id: str, user=None) -> Order:
        order = self.gateway.orders.get_for(user, order_id)
        if order is None:
            raise NotFoundError("Pedido não encontrado", order_id=order_id)
        return order

    def _save(self, order: Order, patch: Dict[str, Any]) -> Order:
        try:
            updated = self.gateway.orders.update(order.id, patch)
        except Exception as e:
            logger.error(f"Erro ao atualizar pedido {order.id}: {e}")
            raise OrderUpdateError("Não foi possível atualizar o pedido", order_id=order.id) from e
        if updated is None:
            raise NotFoundError("Pedido não encontrado", order_id=order.id)
        return updated

    def transition(self, user, order_id: str, target, operator: Optional[str] = None,
                   notes: Optional[str] = None, cancel_reason: Optional[str] = None,
                   cancel_reason_code: Optional[str] = None) -> Order:
        target = _status(target)
        permission = TRANSITION_PERMISSIONS.get(target)
        if permission is not None:
            ensure_permission(user, permission.module, permission.action)

        order = self._load(order_id, user)
        patch = plan_transition(order, target, operator=operator, notes=notes,
                                cancel_reason=cancel_reason, cancel_reason_code=cancel_reason_code)
        updated = self._save(order, patch)

        logger.info(f"Pedido {order.order_number}: {order.status.value} -> {target.value}")
        self.activities.log(
            user,
            ActionType.COMPLETE if target == OrderStatus.DELIVERED else ActionType.UPDATE,
            "order",
            f"Pedido {order.order_number} alterado para {STATUS_LABELS[target]}",
            entity_id=order.id,
            entity_name=order.order_number,
            metadata={"from": order.status.value, "to": target.value},
        )
        return updated

    def advance(self, user, order_id: str, operator: Optional[str] = None,
                notes: Optional[str] = None) -> Order:
        order = self._load(order_id, user)
        target = next_status(order.status)
        if target is None:
            raise InvalidTransitionError(
                f"Pedido em status final: {order.status.value}", current=order.status.value,
            )
        return self.transition(user, order_id, target, operator=operator, notes=notes)

    def cancel(self, user, order_id: str, reason: str, reason_code: Optional[str] = None,
               notes: Optional[str] = None) -> Order:
        return self.transition(user, order_id, OrderStatus.CANCELLED, notes=notes,
                               cancel_reason=reason, cancel_reason_code=reason_code)

    def report_issue(self, user, order_id: str, description: str, notes: Optional[str] = None) -> Order:
        ensure_permission(user, Module.ORDERS, Action.EDIT)
        order = self._load(order_id, user)
        updated = self._save(order, plan_issue(order, description, notes))
        self.activities.log(
            user, ActionType.UPDATE, "order",
            f"Problema reportado no pedido {order.order_number}",
            entity_id=order.id, entity_name=order.order_number,
        )
        return updated
