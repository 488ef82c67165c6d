# group_billing/domain/services/calculator.py
"""
Cálculo de importes de una línea de factura (base, IVA, IRPF, retención, total).

Es la única fuente de la semántica fiscal: la facturación grupal y la
factura individual usan las mismas funciones.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from pydantic import BaseModel

from group_billing.domain.models.invoice import InvoiceLine

CENT = Decimal("0.01")
RECONCILIATION_TOLERANCE = Decimal("0.01")


class LineAmounts(BaseModel):
    subtotal: Decimal
    discount_amount: Decimal
    base_amount: Decimal
    vat_amount: Decimal
    irpf_amount: Decimal
    retention_amount: Decimal
    total_amount: Decimal


def _to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_line_amounts(
    unit_price,
    quantity=1,
    discount_percentage=0,
    vat_rate=0,
    irpf_rate=0,
    retention_rate=0,
) -> LineAmounts:
    """
    total = base + IVA - IRPF - retención, con base = cantidad x precio - descuento.
    Cada componente se redondea a céntimos y el total se obtiene de los
    componentes ya redondeados, de modo que la factura cuadra al céntimo.
    """
    subtotal = _to_decimal(quantity) * _to_decimal(unit_price)
    discount_amount = subtotal * _to_decimal(discount_percentage) / 100
    base_amount = subtotal - discount_amount

    vat_amount = _cents(base_amount * _to_decimal(vat_rate) / 100)
    irpf_amount = _cents(base_amount * _to_decimal(irpf_rate) / 100)
    retention_amount = _cents(base_amount * _to_decimal(retention_rate) / 100)
    base_amount = _cents(base_amount)

    return LineAmounts(
        subtotal=_cents(subtotal),
        discount_amount=_cents(discount_amount),
        base_amount=base_amount,
        vat_amount=vat_amount,
        irpf_amount=irpf_amount,
        retention_amount=retention_amount,
        total_amount=base_amount + vat_amount - irpf_amount - retention_amount,
    )


def summarize_lines(lines: Iterable[InvoiceLine]) -> LineAmounts:
    """Agrega varias líneas (cada una con sus propios tipos) en los totales de la factura."""
    totals = dict.fromkeys(LineAmounts.model_fields, Decimal("0"))
    for line in lines:
        amounts = calculate_line_amounts(
            unit_price=line.unit_price,
            quantity=line.quantity,
            discount_percentage=line.discount_percentage,
            vat_rate=line.vat_rate,
            irpf_rate=line.irpf_rate,
            retention_rate=line.retention_rate,
        )
        for field, value in amounts.model_dump().items():
            totals[field] += value
    return LineAmounts(**totals)


def reconciles(base_amount, vat_amount, irpf_amount, retention_amount, total_amount,
               tolerance: Decimal = RECONCILIATION_TOLERANCE) -> bool:
    expected = (_to_decimal(base_amount) + _to_decimal(vat_amount)
                - _to_decimal(irpf_amount) - _to_decimal(retention_amount))
    return abs(expected - _to_decimal(total_amount)) <= tolerance
