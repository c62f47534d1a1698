"""
Configurações do painel, guardadas no cache local por escopo
(``system`` ou ``user:<id>``).
"""

from typing import Dict, Any
import copy
import logging

from biobox.exceptions import ValidationError

logger = logging.getLogger(__name__)

SYSTEM_SCOPE = "system"

SYSTEM_DEFAULTS = {
    "companyName": "BioBox Indústria de Móveis",
    "companyEmail": "contato@biobox.com.br",
    "companyPhone": "(11) 4321-1234",
    "address": "Rua Industrial, 123 - São Paulo, SP",
    "taxId": "12.345.678/0001-90",
    "lowStockThreshold": 5,
    "monthlyRevenueTarget": 180000,
    "autoBackup": True,
    "backupFrequency": "daily",
    "lastBackup": None,
}

USER_DEFAULTS = {
    "phone": "",
    "notifications": {
        "email": True,
        "push": True,
        "lowStock": True,
        "productionAlerts": True,
        "orderUpdates": False,
    },
    "preferences": {
        "theme": "dark",
        "language": "pt-BR",
        "dateFormat": "dd/MM/yyyy",
        "currency": "BRL",
    },
}

BACKUP_FREQUENCIES = ("daily", "weekly", "monthly")


def user_scope(user_id: str) -> str:
    return f"user:{user_id or 'anonymous'}"


class SettingsService:

    def __init__(self, cache):
        self.cache = cache

    def _defaults(self, scope: str) -> Dict[str, Any]:
        return copy.deepcopy(SYSTEM_DEFAULTS if scope == SYSTEM_SCOPE else USER_DEFAULTS)

    def get_settings(self, scope: str) -> Dict[str, Any]:
        """Valores gravados por cima dos padrões do escopo."""
        stored = self.cache.get_json(self.cache.settings_key(scope), {})
        if not isinstance(stored, dict):
            logger.warning(f"Configurações inválidas em {scope}, usando padrões")
            stored = {}
        return {**self._defaults(scope), **stored}

    def save_settings(self, scope: str, values: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(values, dict):
            raise ValidationError("Configurações inválidas")
        if scope == SYSTEM_SCOPE and values.get("backupFrequency") not in (None, *BACKUP_FREQUENCIES):
            raise ValidationError("Frequência de backup inválida", backupFrequency=values["backupFrequency"])
        merged = {**self.get_settings(scope), **values}
        self.cache.set_json(self.cache.settings_key(scope), merged)
        return merged
