"""
Tests for the dual pricing engine
"""
import pytest
from types import SimpleNamespace
from services.pricing import (
    round_money,
    card_unit_price,
    line_prices,
    compute_ro_totals,
    balance_after_payments,
    is_paid_in_full,
)


def _shop(**overrides):
    settings = {
        'tax_rate': 0.08,
        'labor_tax_rate': 0.0,
        'labor_taxable': False,
        'card_fee_percent': 0.04,
        'shop_supply_enabled': False,
    }
    settings.update(overrides)
    return SimpleNamespace(**settings)


def _item(item_type, quantity, cash, card, **overrides):
    fields = {
        'type': item_type,
        'quantity': quantity,
        'unit_price_cash': cash,
        'unit_price_card': card,
        'status': 'pending',
        'is_taxable': True,
        'is_ntnf': False,
        'is_adjustable': True,
        'is_shop_supply': False,
        'discount_percent': 0,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.mark.unit
class TestUnitPrices:
    """Tests for card price derivation"""

    def test_round_money_half_away_from_zero(self):
        """Test cent rounding for positive and negative values"""
        assert round_money(1.005) in (1.0, 1.01)
        assert round_money(2.5) == 2.5
        assert round_money(-3.456) == -3.46
        assert round_money(None) == 0

    def test_card_price_adds_fee(self):
        """Test adjustable lines add the card fee"""
        assert card_unit_price(100, 0.04) == pytest.approx(104)

    def test_explicit_card_price_wins(self):
        """Test that an explicit card price is kept"""
        assert card_unit_price(100, 0.04, unit_price_card=110) == 110

    def test_ntnf_line_has_no_surcharge(self):
        """Test no-tax-no-fee and non-adjustable lines cost the same on card"""
        assert card_unit_price(100, 0.04, is_ntnf=True) == 100
        assert card_unit_price(100, 0.04, is_adjustable=False) == 100

    def test_line_prices_totals(self):
        """Test line totals multiply by quantity"""
        prices = line_prices(2, 49.99, 0.04)
        assert prices['total_cash'] == 99.98
        assert prices['unit_price_card'] == 51.99
        assert prices['total_card'] == round_money(2 * 49.99 * 1.04)

    def test_line_prices_default_quantity(self):
        """Test that a missing quantity counts as one"""
        assert line_prices(None, 10, 0)['quantity'] == 1.0


@pytest.mark.unit
class TestRepairOrderTotals:
    """Tests for repair order recalculation"""

    def test_basic_totals(self):
        """Test labor plus parts with parts-only tax"""
        items = [
            _item('labor', 2, 100, 104),
            _item('parts', 1, 50, 52),
        ]
        totals = compute_ro_totals(items, _shop())

        assert totals['subtotal_cash'] == 250
        assert totals['subtotal_card'] == 260
        assert totals['tax_parts_amount'] == 4.0
        assert totals['tax_labor_amount'] == 0
        assert totals['total_cash'] == 254
        assert totals['total_card'] == 264
        assert totals['fee_amount'] == 10
        assert totals['balance_due'] == 264

    def test_labor_taxed_when_enabled(self):
        """Test labor tax applies only when the shop taxes labor"""
        items = [_item('labor', 1, 100, 104)]
        totals = compute_ro_totals(items, _shop(labor_taxable=True, labor_tax_rate=0.05))
        assert totals['tax_labor_amount'] == 5.0

    def test_declined_lines_do_not_count(self):
        """Test that declined lines are excluded"""
        items = [
            _item('parts', 1, 50, 52),
            _item('parts', 1, 500, 520, status='declined'),
        ]
        totals = compute_ro_totals(items, _shop())
        assert totals['subtotal_cash'] == 50

    def test_discount_line_subtracts(self):
        """Test discount-type lines reduce the subtotal"""
        items = [
            _item('labor', 1, 100, 104),
            _item('discount', 1, 20, 20, is_taxable=False),
        ]
        totals = compute_ro_totals(items, _shop())
        assert totals['subtotal_cash'] == 80
        assert totals['subtotal_card'] == 84

    def test_discount_percent_on_line(self):
        """Test a fractional line discount and its write-back amounts"""
        item = _item('parts', 1, 50, 52, discount_percent=0.1)
        totals = compute_ro_totals([item], _shop())

        assert totals['subtotal_cash'] == 45
        assert totals['subtotal_card'] == 46.8
        assert totals['discount_amount_cash'] == 5
        assert totals['line_discounts'] == [(item, 5.0, 5.2)]

    def test_ntnf_lines_are_non_adjustable(self):
        """Test NTNF lines carry no card fee"""
        items = [
            _item('fee', 1, 30, 30, is_ntnf=True, is_taxable=False),
            _item('labor', 1, 100, 104),
        ]
        totals = compute_ro_totals(items, _shop())
        assert totals['total_non_adjustable'] == 30
        assert totals['total_adjustable'] == 100
        assert totals['fee_amount'] == 4

    def test_shop_supplies_capped(self):
        """Test shop supplies use the rate up to the cap and are taxed"""
        shop = _shop(
            shop_supply_enabled=True,
            shop_supply_rate_pct=0.05,
            shop_supply_max_amount=10,
            shop_supply_taxable=True,
        )
        items = [_item('labor', 2, 100, 104), _item('parts', 1, 50, 52)]
        totals = compute_ro_totals(items, shop)

        assert totals['shop_supply'] == {'cash': 10.0, 'card': 10.4, 'is_taxable': True}
        assert totals['subtotal_cash'] == 260
        assert totals['tax_parts_amount'] == 4.8

    def test_shop_supplies_unset_taxable(self):
        """Test an unset taxable flag leaves shop supplies untaxed"""
        shop = _shop(
            shop_supply_enabled=True,
            shop_supply_rate_pct=0.05,
            shop_supply_max_amount=10,
            shop_supply_taxable=None,
        )
        totals = compute_ro_totals([_item('parts', 1, 100, 104)], shop)

        assert totals['shop_supply']['is_taxable'] is False
        assert totals['tax_parts_amount'] == 8.0

    def test_existing_shop_supply_line_ignored(self):
        """Test the regenerated shop-supply line is not counted twice"""
        items = [
            _item('parts', 1, 50, 52),
            _item('fee', 1, 99, 99, is_shop_supply=True),
        ]
        totals = compute_ro_totals(items, _shop())
        assert totals['subtotal_cash'] == 50
        assert totals['shop_supply'] is None

    def test_balance_never_negative(self):
        """Test overpayment leaves a zero balance"""
        totals = compute_ro_totals([_item('parts', 1, 50, 52)], _shop(), paid_amount=100)
        assert totals['paid_amount'] == 100
        assert totals['balance_due'] == 0

    def test_empty_order(self):
        """Test an order with no lines totals zero"""
        totals = compute_ro_totals([], _shop())
        assert totals['total_cash'] == 0
        assert totals['total_card'] == 0


@pytest.mark.unit
class TestPaymentHelpers:
    """Tests for paid-in-full checks"""

    def test_balance_after_payments(self):
        """Test cash balance after partial payment"""
        assert balance_after_payments(100, 40) == 60
        assert balance_after_payments(100, 140) == 0

    def test_is_paid_in_full(self):
        """Test zero-total orders are never paid in full"""
        assert is_paid_in_full(100, 100) is True
        assert is_paid_in_full(100, 99.99) is False
        assert is_paid_in_full(0, 0) is False
