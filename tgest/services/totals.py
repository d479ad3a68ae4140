from typing import Union

from ..models.models import ServiceOrder, Quote


def line_total(quantity: float, unit_price: float) -> float:
    return round((quantity or 0) * (unit_price or 0), 2)


def recompute_totals(document: Union[ServiceOrder, Quote]) -> Union[ServiceOrder, Quote]:
    """
    Derive services/parts subtotals and total from the loaded line items.

    ``total`` is always ``services_total + parts_total - discount``; a discount
    larger than the items is kept as a negative total rather than clamped.
    Line totals are taken from quantity and price because the stored column is
    generated by the database and is not populated until the row is flushed.
    """
    document.services_total = round(sum(line_total(i.quantity, i.unit_price) for i in document.services), 2)
    document.parts_total = round(sum(line_total(i.quantity, i.unit_price) for i in document.parts), 2)
    document.total = round(document.services_total + document.parts_total - (document.discount or 0), 2)
    return document
