"""
Registros tipados do painel de produção.
Cada registro sabe se montar a partir de um documento bruto (remoto ou do
cache local) e se converter de volta em dicionário serializável.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Any, Optional

from biobox.utils.normalize import (
    now_iso, normalize_status, to_iso_string, to_number, to_int,
)


class OrderStatus(Enum):
    """Status do pedido na linha de produção"""
    AWAITING_APPROVAL = "awaiting_approval"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PRODUCTION = "in_production"
    QUALITY_CHECK = "quality_check"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class FragmentStatus(Enum):
    """Status de um fragmento (lote de produção)"""
    PENDING = "pending"
    IN_PRODUCTION = "in_production"
    COMPLETED = "completed"


class CustomerType(Enum):
    INDIVIDUAL = "individual"
    COMPANY = "company"


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class UserRole(Enum):
    ADMIN = "admin"
    SELLER = "seller"
    OPERATOR = "operator"


STATUS_LABELS = {
    OrderStatus.AWAITING_APPROVAL: "Aguardando Aprovação",
    OrderStatus.PENDING: "Pendente",
    OrderStatus.CONFIRMED: "Confirmado",
    OrderStatus.IN_PRODUCTION: "Em Produção",
    OrderStatus.QUALITY_CHECK: "Controle de Qualidade",
    OrderStatus.READY: "Pronto",
    OrderStatus.DELIVERED: "Entregue",
    OrderStatus.CANCELLED: "Cancelado",
}

PRIORITY_LABELS = {
    OrderPriority.LOW: "Baixa",
    OrderPriority.MEDIUM: "Média",
    OrderPriority.HIGH: "Alta",
    OrderPriority.URGENT: "Urgente",
}


def _enum(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _str(value, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _optional_str(value) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def _serialize(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    return value


class Record:
    """Conversão comum para dicionário"""

    def to_record(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


@dataclass
class OrderProduct(Record):
    """Item do pedido (produto com modelo, medida, cor e tecido escolhidos)"""
    id: str
    product_id: str
    product_name: str
    quantity: int
    unit_price: float
    total_price: float
    model: str = ""
    size: str = ""
    color: str = ""
    fabric: str = ""
    order_id: str = ""
    specifications: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, raw: Dict[str, Any], order_id: str = "") -> "OrderProduct":
        quantity = to_int(raw.get("quantity"))
        unit_price = to_number(raw.get("unit_price", raw.get("unitPrice")))
        return cls(
            id=_str(raw.get("id")),
            order_id=_str(raw.get("order_id"), order_id),
            product_id=_str(raw.get("product_id", raw.get("productId"))),
            product_name=_str(raw.get("product_name", raw.get("productName"))),
            model=_str(raw.get("model")),
            size=_str(raw.get("size")),
            color=_str(raw.get("color")),
            fabric=_str(raw.get("fabric")),
            quantity=quantity,
            unit_price=unit_price,
            total_price=to_number(raw.get("total_price", raw.get("totalPrice")), quantity * unit_price),
            specifications=raw.get("specifications") if isinstance(raw.get("specifications"), dict) else {},
        )


@dataclass
class OrderFragment(Record):
    """Lote de produção de um pedido fragmentado"""
    id: str
    order_id: str
    fragment_number: int
    quantity: int
    scheduled_date: str
    status: FragmentStatus = FragmentStatus.PENDING
    progress: int = 0
    value: float = 0.0
    assigned_operator: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    @classmethod
    def from_record(cls, raw: Dict[str, Any], order_id: str = "", default_date: str = "") -> "OrderFragment":
        return cls(
            id=_str(raw.get("id")),
            order_id=_str(raw.get("order_id"), order_id),
            fragment_number=to_int(raw.get("fragment_number", raw.get("fragmentNumber"))),
            quantity=to_int(raw.get("quantity")),
            scheduled_date=to_iso_string(raw.get("scheduled_date", raw.get("scheduledDate")), default_date),
            status=_enum(FragmentStatus, raw.get("status"), FragmentStatus.PENDING),
            progress=to_int(raw.get("progress")),
            value=to_number(raw.get("value")),
            assigned_operator=_optional_str(raw.get("assigned_operator")),
            started_at=to_iso_string(raw.get("started_at")),
            completed_at=to_iso_string(raw.get("completed_at")),
        )


@dataclass
class Order(Record):
    """Pedido de produção de um cliente"""
    id: str
    order_number: str
    customer_id: str
    seller_id: str
    status: OrderStatus
    priority: OrderPriority
    total_amount: float
    scheduled_date: str
    production_progress: int
    created_at: str
    updated_at: str
    customer_name: str = ""
    customer_phone: str = ""
    customer_email: str = ""
    seller_name: str = ""
    subtotal: float = 0.0
    discount_percentage: float = 0.0
    discount_amount: float = 0.0
    total_quantity: int = 0
    delivery_date: Optional[str] = None
    completed_date: Optional[str] = None
    assigned_operator: Optional[str] = None
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    cancel_reason_code: Optional[str] = None
    products: List[OrderProduct] = field(default_factory=list)
    is_fragmented: bool = False
    fragments: List[OrderFragment] = field(default_factory=list)

    @classmethod
    def from_record(cls, raw: Dict[str, Any], record_id: Optional[str] = None) -> "Order":
        created = to_iso_string(raw.get("created_at", raw.get("createdAt")), now_iso())
        updated = to_iso_string(raw.get("updated_at", raw.get("updatedAt")), created)
        order_id = _str(record_id if record_id is not None else raw.get("id"))
        scheduled = to_iso_string(raw.get("scheduled_date"), created)
        products = [
            OrderProduct.from_record(p, order_id)
            for p in raw.get("products") or [] if isinstance(p, dict)
        ]
        fragments = [
            OrderFragment.from_record(f, order_id, scheduled)
            for f in raw.get("fragments") or [] if isinstance(f, dict)
        ]
        total_amount = to_number(raw.get("total_amount"))
        return cls(
            id=order_id,
            order_number=_str(raw.get("order_number")),
            customer_id=_str(raw.get("customer_id")),
            seller_id=_str(raw.get("seller_id")),
            status=_enum(OrderStatus, normalize_status(raw.get("status")), OrderStatus.PENDING),
            priority=_enum(OrderPriority, raw.get("priority"), OrderPriority.MEDIUM),
            total_amount=total_amount,
            subtotal=to_number(raw.get("subtotal"), total_amount),
            discount_percentage=to_number(raw.get("discount_percentage")),
            discount_amount=to_number(raw.get("discount_amount")),
            total_quantity=to_int(raw.get("total_quantity")),
            scheduled_date=scheduled,
            delivery_date=to_iso_string(raw.get("delivery_date")),
            completed_date=to_iso_string(raw.get("completed_date")),
            production_progress=max(0, min(100, to_int(raw.get("production_progress")))),
            assigned_operator=_optional_str(raw.get("assigned_operator")),
            notes=_optional_str(raw.get("notes")),
            cancel_reason=_optional_str(raw.get("cancel_reason")),
            cancel_reason_code=_optional_str(raw.get("cancel_reason_code")),
            customer_name=_str(raw.get("customer_name")),
            customer_phone=_str(raw.get("customer_phone")),
            customer_email=_str(raw.get("customer_email")),
            seller_name=_str(raw.get("seller_name")),
            products=products,
            is_fragmented=len(fragments) > 0,
            fragments=fragments,
            created_at=created,
            updated_at=updated,
        )


@dataclass
class Customer(Record):
    id: str
    name: str
    email: str
    phone: str
    created_at: str
    updated_at: str
    type: CustomerType = CustomerType.INDIVIDUAL
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    default_discount: Optional[float] = None

    @classmethod
    def from_record(cls, raw: Dict[str, Any], record_id: Optional[str] = None) -> "Customer":
        created = to_iso_string(raw.get("created_at"), now_iso())
        customer_type = raw.get("type")
        if customer_type == "business":
            customer_type = "company"
        discount = raw.get("default_discount")
        return cls(
            id=_str(record_id if record_id is not None else raw.get("id")),
            name=_str(raw.get("name"), "Cliente") or "Cliente",
            email=_str(raw.get("email")),
            phone=_str(raw.get("phone")),
            type=_enum(CustomerType, customer_type, CustomerType.INDIVIDUAL),
            address=_str(raw.get("address")),
            city=_str(raw.get("city")),
            state=_str(raw.get("state")),
            zip_code=_str(raw.get("zip_code")),
            default_discount=None if discount in (None, "") else max(0.0, min(100.0, to_number(discount))),
            created_at=created,
            updated_at=to_iso_string(raw.get("updated_at"), created),
        )


@dataclass
class ProductModel(Record):
    """Modelo de um produto do catálogo, com as variações e o estoque próprios"""
    name: str
    id: str = ""
    sizes: List[str] = field(default_factory=list)
    colors: List[str] = field(default_factory=list)
    fabrics: List[str] = field(default_factory=list)
    stock: int = 0
    price_modifier: float = 1.0

    @classmethod
    def from_record(cls, raw: Dict[str, Any]) -> "ProductModel":
        def _list(key):
            value = raw.get(key)
            return [str(v) for v in value] if isinstance(value, list) else []

        return cls(
            id=_str(raw.get("id")),
            name=_str(raw.get("name")),
            sizes=_list("sizes"),
            colors=_list("colors"),
            fabrics=_list("fabrics"),
            stock=to_int(raw.get("stock")),
            price_modifier=to_number(raw.get("price_modifier", raw.get("priceModifier")), 1.0),
        )


@dataclass
class Product(Record):
    """Produto do catálogo"""
    id: str
    name: str
    created_at: str
    updated_at: str
    sku: str = ""
    base_price: float = 0.0
    cost_price: float = 0.0
    margin: float = 0.0
    models: List[ProductModel] = field(default_factory=list)
    status: ProductStatus = ProductStatus.ACTIVE
    description: str = ""
    category: str = ""
    barcode: str = ""

    @classmethod
    def from_record(cls, raw: Dict[str, Any], record_id: Optional[str] = None) -> "Product":
        created = to_iso_string(raw.get("created_at", raw.get("createdAt")), now_iso())
        status = raw.get("status")
        if not status and isinstance(raw.get("active"), bool):
            status = "active" if raw["active"] else "inactive"
        models = raw.get("models")
        return cls(
            id=_str(record_id if record_id is not None else raw.get("id")),
            name=_str(raw.get("name"), "Produto") or "Produto",
            sku=_str(raw.get("sku", raw.get("SKU"))),
            base_price=to_number(raw.get("base_price", raw.get("basePrice"))),
            cost_price=to_number(raw.get("cost_price", raw.get("costPrice"))),
            margin=to_number(raw.get("margin")),
            models=[ProductModel.from_record(m) for m in models if isinstance(m, dict)] if isinstance(models, list) else [],
            status=_enum(ProductStatus, _str(status).lower(), ProductStatus.ACTIVE),
            description=_str(raw.get("description")),
            category=_str(raw.get("category")),
            barcode=_str(raw.get("barcode")),
            created_at=created,
            updated_at=to_iso_string(raw.get("updated_at", raw.get("updatedAt")), created),
        )


@dataclass
class User(Record):
    id: str
    email: str
    name: str
    role: UserRole
    created_at: str
    updated_at: str
    permissions: List[str] = field(default_factory=list)

    @classmethod
    def from_record(cls, raw: Dict[str, Any], record_id: Optional[str] = None) -> "User":
        created = to_iso_string(raw.get("created_at"), now_iso())
        permissions = raw.get("permissions")
        return cls(
            id=_str(record_id if record_id is not None else raw.get("id")),
            email=_str(raw.get("email")),
            name=_str(raw.get("name")),
            role=_enum(UserRole, raw.get("role"), UserRole.SELLER),
            permissions=_permission_tokens(permissions),
            created_at=created,
            updated_at=to_iso_string(raw.get("updated_at"), created),
        )


@dataclass
class AuthUser(Record):
    """Perfil da sessão autenticada (o que fica guardado no cache local)"""
    id: str
    name: str
    email: str
    role: UserRole
    permissions: List[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_record(cls, raw: Dict[str, Any]) -> "AuthUser":
        if not isinstance(raw, dict) or not raw.get("id"):
            raise ValueError("Sessão sem id de usuário")
        return cls(
            id=_str(raw.get("id")),
            name=_str(raw.get("name")),
            email=_str(raw.get("email")),
            role=_enum(UserRole, raw.get("role"), UserRole.SELLER),
            permissions=_permission_tokens(raw.get("permissions")),
        )


def _permission_tokens(value) -> List[str]:
    """Permissões antigas eram objetos ``{id, module, actions}``; hoje são strings."""
    if not isinstance(value, list):
        return []
    tokens = []
    for item in value:
        if isinstance(item, str):
            tokens.append(item)
        elif isinstance(item, dict) and item.get("id"):
            tokens.append(str(item["id"]))
    return tokens
