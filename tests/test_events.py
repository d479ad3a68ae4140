from datetime import datetime

from tgest.schemas.common import ReminderType
from tgest.services.events import (
    EventBus,
    OrderFinalized,
    ReceivableCreator,
    ReminderGenerator,
    SurveyIssuer,
    build_event_bus,
    match_rules,
)


def _event(total=100.0):
    return OrderFinalized(
        order_id=1, number="OS2024-0001", customer_id=1, vehicle_id=1, total=total, finalized_at=datetime.utcnow()
    )


def test_handlers_run_in_subscription_order():
    calls = []

    def first(db, event):
        calls.append("first")
        return 1

    def second(db, event):
        calls.append("second")
        return 2

    bus = EventBus()
    bus.subscribe(OrderFinalized, first)
    bus.subscribe(OrderFinalized, second)
    results = bus.publish(None, _event())
    assert calls == ["first", "second"]
    assert results == {"first": 1, "second": 2}


def test_default_bus_wiring():
    handlers = build_event_bus().handlers_for(OrderFinalized)
    assert [type(h) for h in handlers[:3]] == [ReceivableCreator, SurveyIssuer, ReminderGenerator]


def test_zero_total_creates_no_receivable():
    assert ReceivableCreator()(None, _event(total=0)) is None


def test_maintenance_keywords_ignore_case_and_accents():
    rules = match_rules(["TROCA DE ÓLEO e filtro", "Alinhamento"])
    assert [r.reminder_type for r in rules] == [ReminderType.oil_change, ReminderType.alignment]
    assert match_rules(["Pintura do para-choque"]) == []
    assert [r.reminder_type for r in match_rules(["Revisão dos freios"])] == [
        ReminderType.inspection,
        ReminderType.brakes,
    ]
