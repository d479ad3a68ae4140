import pytest

from tgest.errors import IllegalTransitionError, ValidationError
from tgest.schemas.common import OrderStatus, QuoteStatus
from tgest.services import lifecycle
from tgest.services.sequences import QUOTE_PREFIX, format_number, next_number


def test_happy_path_is_legal():
    status = "AWAITING_DIAGNOSIS"
    for target in ("AWAITING_APPROVAL", "IN_REPAIR", "READY_FOR_PICKUP", "FINALIZED"):
        status = lifecycle.ensure_order_transition(status, target).value
    assert status == OrderStatus.finalized.value


def test_ready_for_pickup_can_go_back_to_repair():
    assert lifecycle.ensure_order_transition("READY_FOR_PICKUP", "IN_REPAIR") == OrderStatus.in_repair


@pytest.mark.parametrize(
    "current, target",
    [
        ("AWAITING_DIAGNOSIS", "FINALIZED"),
        ("FINALIZED", "IN_REPAIR"),
        ("CANCELLED", "AWAITING_DIAGNOSIS"),
        ("IN_REPAIR", "AWAITING_DIAGNOSIS"),
    ],
)
def test_illegal_order_transitions(current, target):
    with pytest.raises(IllegalTransitionError) as exc:
        lifecycle.ensure_order_transition(current, target)
    assert exc.value.status_code == 409
    assert exc.value.current == current


def test_unknown_status_is_a_validation_error():
    with pytest.raises(ValidationError) as exc:
        lifecycle.ensure_order_transition("AWAITING_DIAGNOSIS", "DONE")
    assert "Allowed" in exc.value.message


def test_quote_cannot_be_marked_converted_by_hand():
    with pytest.raises(IllegalTransitionError):
        lifecycle.ensure_quote_transition("APPROVED", "CONVERTED")
    assert lifecycle.ensure_quote_transition("PENDING", "SENT") == QuoteStatus.sent


def test_closed_orders():
    assert lifecycle.is_order_closed("FINALIZED")
    assert lifecycle.is_order_closed("CANCELLED")
    assert not lifecycle.is_order_closed("IN_REPAIR")


def test_number_format():
    assert format_number("OS", 2024, 43) == "OS2024-0043"
    assert format_number("ORC", 2024, 1) == "ORC2024-0001"


def test_numbers_increment_per_prefix_and_year(db):
    assert next_number(db, "OS", 2024) == "OS2024-0001"
    assert next_number(db, "OS", 2024) == "OS2024-0002"
    assert next_number(db, "OS", 2025) == "OS2025-0001"
    assert next_number(db, QUOTE_PREFIX, 2024) == "ORC2024-0001"
    db.commit()
