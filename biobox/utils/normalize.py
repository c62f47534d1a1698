"""
Normalização de valores vindos do banco remoto ou do cache local.
O banco remoto e o cache local devolvem datas e números em formatos
heterogêneos; tudo passa por aqui antes de virar registro tipado.
"""

import math
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

# Apelidos de status gravados por versões antigas do painel
STATUS_ALIASES = {
    "pending": ("pending", "pendente", "pendent", "aguardando"),
    "awaiting_approval": ("awaiting_approval", "aguardando_aprovacao", "aguardando aprovação"),
    "confirmed": ("confirmed", "confirmado", "confirmada"),
    "in_production": ("in_production", "em_producao", "em produção", "producing"),
    "quality_check": ("quality_check", "checagem_qualidade", "quality"),
    "ready": ("ready", "pronto", "prontos"),
    "delivered": ("delivered", "entregue", "concluido", "concluído", "completed", "finalizado"),
    "cancelled": ("cancelled", "cancelado", "cancelada", "canceled"),
}

_STATUS_LOOKUP = {alias: status for status, aliases in STATUS_ALIASES.items() for alias in aliases}


def now_iso() -> str:
    return format_iso(datetime.now(timezone.utc))


def format_iso(value: datetime) -> str:
    """Formata no padrão ``YYYY-MM-DDTHH:MM:SS.mmmZ`` (sempre UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def to_number(value: Any, fallback: float = 0) -> float:
    """
    Converte para um número finito ou devolve ``fallback``.

    Aceita números, strings numéricas, Decimal e objetos que expõem
    ``to_number()``/``toNumber()`` (formato de alguns exports antigos).
    """
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else fallback
    if isinstance(value, Decimal):
        return float(value) if value.is_finite() else fallback
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return fallback
        try:
            parsed = float(text)
        except ValueError:
            return fallback
        if not math.isfinite(parsed):
            return fallback
        return int(parsed) if parsed.is_integer() and "." not in text and "e" not in text.lower() else parsed
    if value is not None:
        for attr in ("to_number", "toNumber"):
            method = getattr(value, attr, None)
            if callable(method):
                try:
                    return to_number(method(), fallback)
                except (TypeError, ValueError, InvalidOperation):
                    return fallback
    return fallback


def to_int(value: Any, fallback: int = 0) -> int:
    return int(to_number(value, fallback))


def to_money(value: Any, fallback: float = 0.0) -> Decimal:
    """Número normalizado como Decimal com 2 casas."""
    return Decimal(str(to_number(value, fallback))).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _timestamp_wrapper_to_datetime(value: dict) -> Optional[datetime]:
    seconds = value.get("seconds", value.get("_seconds"))
    if seconds is None:
        return None
    nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
    seconds = to_number(seconds, None)
    if seconds is None:
        return None
    return datetime.fromtimestamp(seconds + to_number(nanos, 0) / 1e9, tz=timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Interpreta qualquer representação de data conhecida; ``None`` se inválida."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    if isinstance(value, dict):
        return _timestamp_wrapper_to_datetime(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        # milissegundos desde a época, como o front gravava
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    for attr in ("to_datetime", "toDate"):
        method = getattr(value, attr, None)
        if callable(method):
            try:
                return parse_datetime(method())
            except (TypeError, ValueError):
                return None
    return None


def to_iso_string(value: Any, fallback: Optional[str] = None) -> Optional[str]:
    """Converte para string ISO-8601 canônica ou devolve ``fallback``."""
    parsed = parse_datetime(value)
    if parsed is None:
        return fallback
    return format_iso(parsed)


def normalize_status(value: Any) -> str:
    if not value:
        return "pending"
    if isinstance(value, str):
        text = value.lower().strip()
        return _STATUS_LOOKUP.get(text, text)
    return str(value)


def sanitize_for_store(value: Any) -> Any:
    """
    Troca recursivamente ``None`` por ``""`` antes de gravar no banco remoto,
    que não aceita valores nulos em documentos aninhados.
    """
    if value is None:
        return ""
    if isinstance(value, list):
        return [sanitize_for_store(v) for v in value]
    if isinstance(value, dict):
        return {k: sanitize_for_store(v) for k, v in value.items()}
    return value
