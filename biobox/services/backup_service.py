"""
Backup e restauração dos dados do painel em um único JSON.
"""

from typing import Dict, Any, List
import logging

from biobox.exceptions import ValidationError
from biobox.utils.normalize import now_iso

logger = logging.getLogger(__name__)

BACKUP_APP = "BioBoxsys"
BACKUP_VERSION = 1
BACKUP_COLLECTIONS = ("users", "customers", "products", "orders")


def backup_filename(generated_at: str) -> str:
    return f"bioboxsys-backup-{generated_at.replace(':', '-').replace('.', '-')}.json"


def create_backup(gateway) -> Dict[str, Any]:
    """Lê as quatro coleções (remoto com fallback local) e monta o arquivo de backup."""
    payload: Dict[str, Any] = {
        "meta": {
            "generatedAt": now_iso(),
            "app": BACKUP_APP,
            "version": BACKUP_VERSION,
        },
    }
    for collection in BACKUP_COLLECTIONS:
        entities = getattr(gateway, collection).list()
        payload[collection] = [e.to_record() for e in entities]
    logger.info("Backup gerado: " + ", ".join(f"{c}={len(payload[c])}" for c in BACKUP_COLLECTIONS))
    return payload


def restore_backup(cache, data: Dict[str, Any]) -> List[str]:
    """
    Sobrescreve no cache local as coleções presentes no arquivo, como vieram.
    Não valida o conteúdo dos registros.

    Returns:
        Coleções restauradas
    """
    if not isinstance(data, dict):
        raise ValidationError("Arquivo de backup inválido")
    restored = []
    for collection in BACKUP_COLLECTIONS:
        if data.get(collection):
            cache.set_json(cache.collection_key(collection), data[collection])
            restored.append(collection)
    logger.info(f"Backup restaurado: {', '.join(restored) or 'nada'}")
    return restored
