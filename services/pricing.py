"""
Dual pricing engine for repair orders.

Every line carries a cash price and a card price. Card prices add the
shop's card fee to adjustable lines; NTNF ("no tax, no fee") lines never
get the surcharge. ``compute_ro_totals`` is pure: it reads line items and
shop settings (ORM rows or any attribute objects) and returns the numbers
the repository writes back.
"""

import math
from typing import Any, Dict, Iterable, Optional

COUNTED_LINE_STATUSES = ('pending', 'approved')
SHOP_SUPPLY_SORT_ORDER = 9999
SHOP_SUPPLY_DESCRIPTION = 'Shop Supplies'


def round_money(value) -> float:
    """Round to cents, half away from zero."""
    value = float(value or 0)
    return math.floor(abs(value) * 100 + 0.5) / 100 * (1 if value >= 0 else -1)


def _num(value, default=0.0) -> float:
    if value is None or value == '':
        return default
    return float(value)


def card_unit_price(unit_price_cash, card_fee_percent, unit_price_card=None,
                    is_ntnf: bool = False, is_adjustable: bool = True) -> float:
    """
    Card price for one unit.

    An explicit card price wins; otherwise NTNF and non-adjustable lines
    cost the same on card, and adjustable lines add the card fee.
    """
    if unit_price_card not in (None, '', 0, '0'):
        return _num(unit_price_card)
    cash = _num(unit_price_cash)
    if is_ntnf or not is_adjustable:
        return cash
    return cash * (1 + _num(card_fee_percent))


def line_prices(quantity, unit_price_cash, card_fee_percent, unit_price_card=None,
                is_ntnf: bool = False, is_adjustable: bool = True) -> Dict[str, float]:
    """Unit and total prices for a line, rounded to cents."""
    qty = _num(quantity, 1.0)
    cash = _num(unit_price_cash)
    card = card_unit_price(cash, card_fee_percent, unit_price_card, is_ntnf, is_adjustable)
    return {
        'quantity': qty,
        'unit_price_cash': round_money(cash),
        'unit_price_card': round_money(card),
        'total_cash': round_money(qty * cash),
        'total_card': round_money(qty * card),
    }


def compute_ro_totals(items: Iterable[Any], shop: Any, paid_amount: float = 0) -> Dict[str, Any]:
    """
    Recalculate a repair order from its line items.

    Args:
        items: Line items; only pending/approved ones count and the
            existing shop-supply line is ignored (it is regenerated)
        shop: Shop settings (tax rates, labor_taxable, card_fee_percent,
            shop supply settings)
        paid_amount: Sum of completed payments

    Returns:
        Dict of RO total columns plus ``line_discounts`` ([(item, cash, card)])
        for lines with a discount percent, and ``shop_supply`` (None when
        shop supplies are disabled)
    """
    parts_rate = _num(getattr(shop, 'parts_tax_rate', None)) or _num(getattr(shop, 'tax_rate', None))
    labor_rate = _num(getattr(shop, 'labor_tax_rate', None))
    labor_taxable = getattr(shop, 'labor_taxable', False) is True
    card_fee = _num(getattr(shop, 'card_fee_percent', None))

    subtotal_cash = subtotal_card = 0.0
    taxable_parts = taxable_labor = 0.0
    adjustable = non_adjustable = 0.0
    discount_cash = discount_card = 0.0
    line_discounts = []

    for item in items:
        if getattr(item, 'status', 'pending') not in COUNTED_LINE_STATUSES:
            continue
        if getattr(item, 'is_shop_supply', False):
            continue

        qty = _num(getattr(item, 'quantity', 1), 1.0)
        base_cash = qty * _num(getattr(item, 'unit_price_cash', 0))
        base_card = qty * _num(getattr(item, 'unit_price_card', 0))

        line_d_cash = _num(getattr(item, 'discount_amount_cash', 0))
        line_d_card = _num(getattr(item, 'discount_amount_card', 0))
        pct = _num(getattr(item, 'discount_percent', 0))
        if pct > 0:
            line_d_cash = base_cash * pct
            line_d_card = base_card * pct
            line_discounts.append((item, round_money(line_d_cash), round_money(line_d_card)))

        net_cash = base_cash - line_d_cash
        net_card = base_card - line_d_card
        discount_cash += line_d_cash
        discount_card += line_d_card

        item_type = getattr(item, 'type', None)
        if item_type == 'discount':
            subtotal_cash -= net_cash
            subtotal_card -= net_card
            continue

        subtotal_cash += net_cash
        subtotal_card += net_card

        if getattr(item, 'is_taxable', True):
            if item_type in ('parts', 'fee'):
                taxable_parts += net_cash
            elif item_type in ('labor', 'sublet') and labor_taxable:
                taxable_labor += net_cash

        if getattr(item, 'is_ntnf', False):
            non_adjustable += net_cash
        elif getattr(item, 'is_adjustable', True):
            adjustable += net_cash

    shop_supply = None
    supply_cash = supply_card = 0.0
    if getattr(shop, 'shop_supply_enabled', False):
        rate = _num(getattr(shop, 'shop_supply_rate_pct', 0))
        cap = _num(getattr(shop, 'shop_supply_max_amount', 0))
        supply_cash = min(subtotal_cash * rate, cap if cap > 0 else math.inf)
        supply_cash = max(supply_cash, 0.0)
        supply_card = supply_cash * (1 + card_fee)
        # unset counts as not taxable, matching the settings payload
        taxable = bool(getattr(shop, 'shop_supply_taxable', False))
        shop_supply = {
            'cash': round_money(supply_cash),
            'card': round_money(supply_card),
            'is_taxable': taxable,
        }

        subtotal_cash += supply_cash
        subtotal_card += supply_card
        if taxable:
            taxable_parts += supply_cash
        adjustable += supply_cash

    tax_parts = taxable_parts * parts_rate
    tax_labor = taxable_labor * labor_rate
    tax = tax_parts + tax_labor
    total_cash = subtotal_cash + tax
    total_card = subtotal_card + tax
    paid = _num(paid_amount)

    return {
        'subtotal_cash': round_money(subtotal_cash),
        'subtotal_card': round_money(subtotal_card),
        'tax_amount': round_money(tax),
        'tax_parts_amount': round_money(tax_parts),
        'tax_labor_amount': round_money(tax_labor),
        'total_cash': round_money(total_cash),
        'total_card': round_money(total_card),
        'total_adjustable': round_money(adjustable),
        'total_non_adjustable': round_money(non_adjustable),
        'fee_amount': round_money(adjustable * card_fee),
        'paid_amount': round_money(paid),
        'balance_due': round_money(max(0.0, total_card - paid)),
        'shop_supply_amount_cash': round_money(supply_cash),
        'shop_supply_amount_card': round_money(supply_card),
        'discount_amount_cash': round_money(discount_cash),
        'discount_amount_card': round_money(discount_card),
        'line_discounts': line_discounts,
        'shop_supply': shop_supply,
    }


def balance_after_payments(total_cash: float, paid: float) -> float:
    """Cash balance shown next to the payment list."""
    return round_money(max(0.0, _num(total_cash) - _num(paid)))


def is_paid_in_full(total_cash: Optional[float], paid: float) -> bool:
    total = _num(total_cash)
    return total > 0 and _num(paid) >= total
