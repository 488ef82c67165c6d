from decimal import Decimal

from group_billing.domain.models.invoice import InvoiceLine
from group_billing.domain.services.calculator import calculate_line_amounts, reconciles, summarize_lines


def test_service_price_with_vat():
    amounts = calculate_line_amounts(unit_price=Decimal("50"), vat_rate=Decimal("21"))

    assert amounts.base_amount == Decimal("50.00")
    assert amounts.vat_amount == Decimal("10.50")
    assert amounts.total_amount == Decimal("60.50")


def test_withholdings_are_subtracted():
    amounts = calculate_line_amounts(unit_price="100", vat_rate=21, irpf_rate=15, retention_rate=2)

    assert amounts.irpf_amount == Decimal("15.00")
    assert amounts.retention_amount == Decimal("2.00")
    assert amounts.total_amount == Decimal("104.00")


def test_discount_reduces_the_base():
    amounts = calculate_line_amounts(unit_price=Decimal("40"), quantity=2, discount_percentage=10, vat_rate=21)

    assert amounts.subtotal == Decimal("80.00")
    assert amounts.discount_amount == Decimal("8.00")
    assert amounts.base_amount == Decimal("72.00")
    assert amounts.vat_amount == Decimal("15.12")


def test_rounding_is_half_up_per_component():
    # 33.33 * 21 % = 6.9993 -> 7.00 ; 10.05 * 10 % = 1.005 -> 1.01
    assert calculate_line_amounts(unit_price=Decimal("33.33"), vat_rate=21).vat_amount == Decimal("7.00")
    assert calculate_line_amounts(unit_price=Decimal("10.05"), vat_rate=10).vat_amount == Decimal("1.01")


def test_missing_rates_count_as_zero():
    amounts = calculate_line_amounts(unit_price=Decimal("25"), vat_rate=None, irpf_rate=None)

    assert amounts.vat_amount == Decimal("0.00")
    assert amounts.total_amount == Decimal("25.00")


def test_total_always_reconciles_with_components():
    for price in ("0.01", "19.99", "33.33", "1234.56"):
        a = calculate_line_amounts(unit_price=price, vat_rate=21, irpf_rate=7, retention_rate=1)
        assert reconciles(a.base_amount, a.vat_amount, a.irpf_amount, a.retention_amount, a.total_amount)


def test_reconciles_rejects_totals_off_by_more_than_a_cent():
    assert reconciles("50.00", "10.50", 0, 0, "60.51")
    assert not reconciles("50.00", "10.50", 0, 0, "60.52")


def test_summarize_lines_adds_each_line():
    lines = [
        InvoiceLine(description="Sesión", unit_price=Decimal("50"), vat_rate=Decimal("21"), line_amount=Decimal("50")),
        InvoiceLine(description="Material", unit_price=Decimal("10"), quantity=Decimal("3"),
                    line_amount=Decimal("30")),
    ]
    totals = summarize_lines(lines)

    assert totals.base_amount == Decimal("80.00")
    assert totals.vat_amount == Decimal("10.50")
    assert totals.total_amount == Decimal("90.50")
