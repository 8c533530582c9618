"""
Checkout pricing: line discounts, bill discount allocation and GST breakdown.

Pure computation. Nothing here reads or writes the database, and nothing here
knows about stock; sufficiency is checked by the inventory ledger when the
sale is executed.

MONEY:
- All amounts are Decimal, rounded half-up to 2 places at each monetary step.
- Effective unit prices keep 4 places so quantity x price reproduces the line.
- Prices are tax-inclusive: the GST breakdown extracts tax, it never adds it.

ALLOCATION:
1. line_total = max(0, base - line discount), base = unit_price x quantity
2. A line is eligible for the bill discount unless it already carries a line
   discount and apply_to_discounted_items is off.
3. PERCENTAGE bill discounts scale the eligible base; FIXED is a flat amount.
4. The amount spread over eligible lines is capped at the eligible base, pro
   rata to each line's total. The rounding residual goes to the last eligible
   line, spilling to earlier ones only when a share would leave [0, line_total].
5. grand_total = max(0, post_line_total - bill discount amount). The flat
   amount is NOT capped here: when a FIXED bill discount exceeds the eligible
   base and ineligible lines are present, the excess comes off the bill total
   while those lines keep their totals. Only in that case does
   sum(final_line_total) exceed grand_total; otherwise they are equal exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ..errors import InvalidInput

DISCOUNT_FIXED = "FIXED"
DISCOUNT_PERCENTAGE = "PERCENTAGE"
DISCOUNT_TYPES = (DISCOUNT_FIXED, DISCOUNT_PERCENTAGE)

MAX_GST_RATE = Decimal("28")

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENTS = Decimal("0.01")
UNIT_PRICE_PLACES = Decimal("0.0001")


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value, name: str) -> Decimal:
    """Coerce JSON-ish input (int, float, numeric string, Decimal) to Decimal."""
    if isinstance(value, bool) or value is None:
        raise InvalidInput(f"{name} must be a number", details={name: value})
    try:
        if isinstance(value, float):
            result = Decimal(str(value))
        elif isinstance(value, str):
            result = Decimal(value.strip())
        else:
            result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput(f"{name} must be a number", details={name: value})
    if not result.is_finite():
        raise InvalidInput(f"{name} must be a finite number", details={name: value})
    return result


def to_bool(value, name: str) -> bool:
    """Accept only JSON booleans; "false" must not read as True."""
    if value is None:
        return False
    if not isinstance(value, bool):
        raise InvalidInput(f"{name} must be true or false", details={name: value})
    return value


@dataclass(frozen=True)
class Discount:
    type: str = DISCOUNT_FIXED
    value: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: dict | None, name: str = "discount") -> "Discount":
        data = data or {}
        return cls(
            type=str(data.get("type") or DISCOUNT_FIXED).upper(),
            value=to_decimal(data.get("value") or 0, f"{name}.value"),
        )

    @property
    def is_set(self) -> bool:
        return self.value > 0

    def amount_on(self, base: Decimal) -> Decimal:
        if self.type == DISCOUNT_PERCENTAGE:
            return to_money(base * self.value / HUNDRED)
        return to_money(self.value)

    def to_dict(self) -> dict:
        return {"type": self.type, "value": str(self.value)}


@dataclass(frozen=True)
class BillDiscount(Discount):
    apply_to_discounted_items: bool = False

    @classmethod
    def from_dict(cls, data: dict | None, name: str = "bill_discount") -> "BillDiscount":
        data = data or {}
        base = Discount.from_dict(data, name)
        return cls(
            type=base.type,
            value=base.value,
            apply_to_discounted_items=to_bool(
                data.get("apply_to_discounted_items", False), f"{name}.apply_to_discounted_items"
            ),
        )

    def to_dict(self) -> dict:
        return {**super().to_dict(), "apply_to_discounted_items": self.apply_to_discounted_items}


@dataclass(frozen=True)
class CartLine:
    product_id: int
    unit_price: Decimal
    quantity: int
    gst_rate: Decimal = ZERO
    line_discount: Discount = field(default_factory=Discount)


@dataclass
class PricedLine:
    product_id: int
    quantity: int
    unit_price: Decimal
    gst_rate: Decimal
    base: Decimal
    line_discount_amount: Decimal
    line_total: Decimal
    eligible: bool
    bill_discount_share: Decimal = ZERO
    final_line_total: Decimal = ZERO
    effective_unit_price: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "gst_rate": str(self.gst_rate),
            "base": str(self.base),
            "line_discount_amount": str(self.line_discount_amount),
            "line_total": str(self.line_total),
            "eligible_for_bill_discount": self.eligible,
            "bill_discount_share": str(self.bill_discount_share),
            "final_line_total": str(self.final_line_total),
            "effective_unit_price": str(self.effective_unit_price),
        }


@dataclass
class TaxGroup:
    rate: Decimal
    taxable: Decimal = ZERO
    gst: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.taxable + self.gst

    def to_dict(self) -> dict:
        return {
            "rate": str(self.rate),
            "taxable": str(self.taxable),
            "gst": str(self.gst),
            "total": str(self.total),
        }


@dataclass
class CheckoutQuote:
    lines: list[PricedLine]
    subtotal: Decimal
    post_line_total: Decimal
    bill_base: Decimal
    bill_discount_amount: Decimal
    bill_discount_applied: Decimal
    grand_total: Decimal
    tax_breakdown: list[TaxGroup]

    @property
    def line_discount_total(self) -> Decimal:
        return self.subtotal - self.post_line_total

    @property
    def total_discount(self) -> Decimal:
        return self.subtotal - self.grand_total

    def to_dict(self) -> dict:
        return {
            "lines": [line.to_dict() for line in self.lines],
            "subtotal": str(self.subtotal),
            "line_discount_total": str(self.line_discount_total),
            "post_line_total": str(self.post_line_total),
            "bill_base": str(self.bill_base),
            "bill_discount_amount": str(self.bill_discount_amount),
            "bill_discount_applied": str(self.bill_discount_applied),
            "total_discount": str(self.total_discount),
            "grand_total": str(self.grand_total),
            "tax_breakdown": [group.to_dict() for group in self.tax_breakdown],
        }


def _validate_discount(discount: Discount, name: str) -> None:
    if discount.type not in DISCOUNT_TYPES:
        raise InvalidInput(
            f"{name}.type must be one of {', '.join(DISCOUNT_TYPES)}",
            details={"type": discount.type},
        )
    if discount.value < 0:
        raise InvalidInput(f"{name}.value must not be negative", details={"value": str(discount.value)})


def validate_cart(lines: list[CartLine], bill_discount: BillDiscount) -> None:
    """
    Reject malformed input before any computation.

    Raises:
        InvalidInput: non-positive quantity, negative price or discount,
            unknown discount type, GST rate outside 0-28
    """
    for index, line in enumerate(lines):
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
            raise InvalidInput(
                f"Line {index + 1}: quantity must be a positive integer",
                details={"line": index + 1, "product_id": line.product_id, "quantity": line.quantity},
            )
        if line.unit_price < 0:
            raise InvalidInput(
                f"Line {index + 1}: unit price must not be negative",
                details={"line": index + 1, "product_id": line.product_id},
            )
        if line.gst_rate < 0 or line.gst_rate > MAX_GST_RATE:
            raise InvalidInput(
                f"Line {index + 1}: GST rate must be between 0 and {MAX_GST_RATE}",
                details={"line": index + 1, "gst_rate": str(line.gst_rate)},
            )
        _validate_discount(line.line_discount, f"lines[{index}].line_discount")
    _validate_discount(bill_discount, "bill_discount")


def _allocate_bill_discount(priced: list[PricedLine], applied: Decimal, bill_base: Decimal) -> None:
    eligible = [line for line in priced if line.eligible]
    if not eligible or applied <= 0:
        return

    for line in eligible:
        line.bill_discount_share = to_money(applied * line.line_total / bill_base)

    residual = applied - sum((line.bill_discount_share for line in eligible), ZERO)
    step = CENTS if residual > 0 else -CENTS
    for line in reversed(eligible):
        if not residual:
            break
        while residual and ZERO <= line.bill_discount_share + step <= line.line_total:
            line.bill_discount_share += step
            residual -= step


def _rate_key(rate: Decimal) -> Decimal:
    # 18.00 and 18 are the same slab; keep 20 as "20", not "2E+1"
    normalized = rate.normalize()
    if normalized == normalized.to_integral_value():
        return normalized.quantize(Decimal(1))
    return normalized


def _tax_breakdown(priced: list[PricedLine]) -> list[TaxGroup]:
    groups: dict[Decimal, TaxGroup] = {}
    for line in priced:
        rate = _rate_key(line.gst_rate)
        group = groups.setdefault(rate, TaxGroup(rate=rate))
        taxable = to_money(line.final_line_total / (1 + line.gst_rate / HUNDRED))
        group.taxable += taxable
        group.gst += line.final_line_total - taxable
    return [groups[rate] for rate in sorted(groups)]


def price_cart(lines: list[CartLine], bill_discount: BillDiscount | None = None) -> CheckoutQuote:
    """
    Compute per-line totals, bill discount allocation, grand total and tax.

    Raises:
        InvalidInput: see validate_cart
    """
    bill_discount = bill_discount or BillDiscount()
    validate_cart(lines, bill_discount)

    priced: list[PricedLine] = []
    for line in lines:
        base = to_money(line.unit_price * line.quantity)
        line_discount_amount = line.line_discount.amount_on(base)
        eligible = bill_discount.apply_to_discounted_items or not line.line_discount.is_set
        priced.append(
            PricedLine(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                gst_rate=line.gst_rate,
                base=base,
                line_discount_amount=line_discount_amount,
                line_total=max(ZERO, base - line_discount_amount),
                eligible=eligible,
            )
        )

    subtotal = sum((line.base for line in priced), ZERO)
    post_line_total = sum((line.line_total for line in priced), ZERO)
    bill_base = sum((line.line_total for line in priced if line.eligible), ZERO)

    bill_discount_amount = ZERO if bill_base == 0 else bill_discount.amount_on(bill_base)
    # A flat discount larger than the eligible base floors those lines at zero
    bill_discount_applied = min(bill_discount_amount, bill_base)

    _allocate_bill_discount(priced, bill_discount_applied, bill_base)

    for line in priced:
        line.final_line_total = max(ZERO, line.line_total - line.bill_discount_share)
        line.effective_unit_price = (line.final_line_total / line.quantity).quantize(
            UNIT_PRICE_PLACES, rounding=ROUND_HALF_UP
        )

    return CheckoutQuote(
        lines=priced,
        subtotal=subtotal,
        post_line_total=post_line_total,
        bill_base=bill_base,
        bill_discount_amount=bill_discount_amount,
        bill_discount_applied=bill_discount_applied,
        grand_total=max(ZERO, post_line_total - bill_discount_amount),
        tax_breakdown=_tax_breakdown(priced),
    )
