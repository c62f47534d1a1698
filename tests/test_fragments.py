from decimal import Decimal

import pytest

from biobox.exceptions import (
    FragmentAllocationError, InvalidTransitionError, NotFoundError, PermissionDeniedError, ValidationError,
)
from biobox.models.entities import FragmentStatus, Order, OrderStatus
from biobox.services.fragment_service import (
    FragmentSpec, all_fragments_completed, allocate, build_patch, fragment_progress, released_value,
)
from conftest import make_order

DAY = "2025-03-10T00:00:00.000Z"


def _order(total_quantity=10, total_amount=1000, **extra):
    return Order.from_record({"id": "o1", "order_number": "ORD-2025-0001", "status": "confirmed",
                              "total_quantity": total_quantity, "total_amount": total_amount, **extra})


def _specs(*quantities, **extra):
    return [FragmentSpec(quantity=q, scheduled_date=DAY, **extra) for q in quantities]


def test_allocate_numbers_fragments_in_order():
    fragments = allocate(_order(), _specs(3, 3, 4), stamp=1700000000000)

    assert [f.fragment_number for f in fragments] == [1, 2, 3]
    assert [f.id for f in fragments] == [f"o1-frag-{n}-1700000000000" for n in (1, 2, 3)]
    assert all(f.status == FragmentStatus.PENDING and f.progress == 0 for f in fragments)


def test_allocate_rejects_sum_mismatch():
    with pytest.raises(FragmentAllocationError) as exc:
        allocate(_order(total_quantity=10), _specs(3, 3, 3))

    assert exc.value.details == {"fragment_sum": 9, "total_quantity": 10}


def test_allocate_rejects_non_positive_quantity():
    with pytest.raises(FragmentAllocationError):
        allocate(_order(), _specs(10, 0))


def test_order_without_quantity_adopts_fragment_sum():
    order = _order(total_quantity=0)
    fragments = allocate(order, _specs(4, 2))

    patch = build_patch(order, fragments)

    assert patch["total_quantity"] == 6
    assert patch["is_fragmented"] is True
    assert len(patch["fragments"]) == 2


def test_missing_value_is_prorated():
    fragments = allocate(_order(total_quantity=3, total_amount=100), _specs(1, 2))

    assert [f.value for f in fragments] == [33.33, 66.67]


def test_prorated_values_add_up_to_order_total():
    fragments = allocate(_order(total_quantity=3, total_amount=100), _specs(1, 1, 1))

    assert [f.value for f in fragments] == [33.33, 33.33, 33.34]
    assert sum(Decimal(str(f.value)) for f in fragments) == Decimal("100.00")


def test_explicit_value_is_kept():
    fragments = allocate(_order(), _specs(5, 5, value=120.5))
    assert [f.value for f in fragments] == [120.5, 120.5]


def test_empty_spec_list_clears_fragmentation():
    order = _order()
    assert allocate(order, []) == []
    assert build_patch(order, [])["is_fragmented"] is False


def test_spec_from_record_validates():
    spec = FragmentSpec.from_record({"quantity": "4", "scheduledDate": "2025-03-10", "value": ""})
    assert spec == FragmentSpec(quantity=4, scheduled_date=DAY)

    with pytest.raises(FragmentAllocationError):
        FragmentSpec.from_record({"quantity": 1.5, "scheduled_date": "2025-03-10"})
    with pytest.raises(ValidationError):
        FragmentSpec.from_record({"quantity": 1})


def test_progress_is_weighted_by_value():
    order = _order(fragments=[
        {"id": "f1", "fragment_number": 1, "quantity": 2, "value": 300, "status": "completed"},
        {"id": "f2", "fragment_number": 2, "quantity": 8, "value": 700, "status": "in_production"},
    ])

    assert released_value(order) == 300.0
    assert fragment_progress(order) == 30
    assert not all_fragments_completed(order)
    assert fragment_progress(_order()) == 0


def test_save_and_complete_fragments(services, admin):
    order = make_order(services, admin)

    fragmented = services.fragments.save_fragments(admin, order.id, [
        {"quantity": 2, "scheduled_date": "2025-03-10"},
        {"quantity": 3, "scheduled_date": "2025-03-12"},
    ])
    assert fragmented.is_fragmented
    assert [f.value for f in fragmented.fragments] == [160.0, 240.0]

    first, second = (f.id for f in fragmented.fragments)
    started = services.fragments.start_fragment(admin, order.id, first, operator="João")
    assert started.fragments[0].status == FragmentStatus.IN_PRODUCTION
    assert started.fragments[0].started_at
    assert started.fragments[0].assigned_operator == "João"

    done = services.fragments.complete_fragment(admin, order.id, first)
    assert done.fragments[0].status == FragmentStatus.COMPLETED
    assert done.fragments[0].progress == 100
    assert done.fragments[0].completed_at
    assert fragment_progress(done) == 40
    assert done.status == OrderStatus.PENDING

    services.fragments.start_fragment(admin, order.id, second)
    finished = services.fragments.complete_fragment(admin, order.id, second)
    assert all_fragments_completed(finished)
    assert finished.status == OrderStatus.PENDING


def test_fragment_cannot_skip_production(services, admin):
    order = make_order(services, admin)
    fragmented = services.fragments.save_fragments(admin, order.id, [
        {"quantity": 5, "scheduled_date": "2025-03-10"},
    ])
    fragment_id = fragmented.fragments[0].id

    with pytest.raises(InvalidTransitionError):
        services.fragments.complete_fragment(admin, order.id, fragment_id)
    with pytest.raises(NotFoundError):
        services.fragments.start_fragment(admin, order.id, "missing")


def test_save_fragments_mismatch_leaves_order_untouched(services, admin):
    order = make_order(services, admin)

    with pytest.raises(FragmentAllocationError):
        services.fragments.save_fragments(admin, order.id, [{"quantity": 4, "scheduled_date": "2025-03-10"}])

    assert not services.gateway.orders.get(order.id).is_fragmented


def test_save_fragments_rejects_final_orders(services, admin):
    order = make_order(services, admin)
    services.lifecycle.cancel(admin, order.id, "Erro no pedido")

    with pytest.raises(InvalidTransitionError):
        services.fragments.save_fragments(admin, order.id, [{"quantity": 5, "scheduled_date": "2025-03-10"}])


def test_seller_cannot_fragment(services, admin, seller):
    order = make_order(services, admin)

    with pytest.raises(PermissionDeniedError):
        services.fragments.save_fragments(seller, order.id, [])
