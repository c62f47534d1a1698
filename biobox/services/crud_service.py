"""
Cadastros simples (clientes, produtos e usuários): validação mínima,
checagem de permissão e registro de atividade em volta do gateway.
"""

from typing import Dict, List, Any, Tuple
import logging

from biobox.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from biobox.models.permissions import Action, Module
from biobox.services.activity_logger import ActionType
from biobox.services.auth_service import ensure_permission

logger = logging.getLogger(__name__)

META_FIELDS = ("id", "created_at", "updated_at")


class CrudService:
    """
    Args:
        entities: ``EntityGateway`` da coleção
        module: módulo de permissão
        entity_type: nome gravado nas atividades (customer, product, user)
        required: campos obrigatórios na criação
    """

    def __init__(self, entities, module: Module, entity_type: str, activities,
                 required: Tuple[str, ...] = ("name",)):
        self.entities = entities
        self.module = module
        self.entity_type = entity_type
        self.activities = activities
        self.required = required

    def _normalize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record = self.entities.entity_cls.from_record(data, "").to_record()
        return {k: v for k, v in record.items() if k not in META_FIELDS}

    def _check_create(self, user):
        ensure_permission(user, self.module, Action.CREATE)

    def list(self, user) -> List:
        ensure_permission(user, self.module, Action.VIEW)
        return self.entities.list()

    def get(self, user, record_id: str):
        ensure_permission(user, self.module, Action.VIEW)
        entity = self.entities.get(record_id)
        if entity is None:
            raise NotFoundError("Registro não encontrado", id=record_id)
        return entity

    def create(self, user, data: Dict[str, Any]):
        self._check_create(user)
        missing = [f for f in self.required if not str(data.get(f) or "").strip()]
        if missing:
            raise ValidationError(f"Campos obrigatórios: {', '.join(missing)}", fields=missing)
        entity = self.entities.create(self._normalize(data))
        self.activities.log(
            user, ActionType.CREATE, self.entity_type,
            f"{self.entity_type.capitalize()} {getattr(entity, 'name', entity.id)} cadastrado",
            entity_id=entity.id, entity_name=getattr(entity, "name", None),
        )
        return entity

    def update(self, user, record_id: str, data: Dict[str, Any]):
        ensure_permission(user, self.module, Action.EDIT)
        current = self.entities.get(record_id)
        if current is None:
            raise NotFoundError("Registro não encontrado", id=record_id)
        patch = {k: v for k, v in data.items() if k not in META_FIELDS}
        normalized = self._normalize({**current.to_record(), **patch})
        updated = self.entities.update(record_id, {k: normalized[k] for k in patch if k in normalized})
        if updated is None:
            raise NotFoundError("Registro não encontrado", id=record_id)
        return updated

    def delete(self, user, record_id: str) -> bool:
        ensure_permission(user, self.module, Action.DELETE)
        deleted = self.entities.delete(record_id)
        if deleted:
            self.activities.log(
                user, ActionType.DELETE, self.entity_type,
                f"{self.entity_type.capitalize()} {record_id} removido", entity_id=record_id,
            )
        return deleted


class UserService(CrudService):
    """Usuários: só administradores cadastram e mudam perfil ou permissões."""

    def __init__(self, entities, activities):
        super().__init__(entities, Module.USERS, "user", activities, required=("email", "name"))

    def _check_create(self, user):
        if user is None or not user.is_admin:
            raise PermissionDeniedError("Somente administradores cadastram usuários")

    def update(self, user, record_id: str, data: Dict[str, Any]):
        privileged = [f for f in ("role", "permissions") if f in data]
        if privileged and (user is None or not user.is_admin):
            raise PermissionDeniedError(
                "Somente administradores alteram perfil e permissões", fields=privileged,
            )
        return super().update(user, record_id, data)
