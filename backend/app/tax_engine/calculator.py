"""Pure import-tax cascade — no DB dependency, easy to unit test.

All arithmetic is Decimal. Outputs are rounded half-up to the cent from unrounded
intermediates; nothing is rounded before the next step of the cascade.
"""

from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.exceptions import InvalidInputError
from app.models.cargo import ClearanceType

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


def to_decimal(value, field_name: str) -> Decimal:
    """Coerce a numeric input, naming the field when it is not a finite number."""
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise InvalidInputError(field_name, "expected a number, got a boolean")
    try:
        result = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInputError(field_name, f"'{value}' is not a number")
    if not result.is_finite():
        raise InvalidInputError(field_name, f"'{value}' is not a finite number")
    return result


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _non_negative(value, field_name: str) -> Decimal:
    result = to_decimal(value, field_name)
    if result < 0:
        raise InvalidInputError(field_name, f"must not be negative (got {value})")
    return result


@dataclass(frozen=True)
class TaxBreakdown:
    customs_value: Decimal
    duty_rate: Decimal
    vat_rate: Decimal
    anti_dumping_rate: Decimal
    countervailing_rate: Decimal
    duty: Decimal
    anti_dumping: Decimal
    countervailing: Decimal
    other_tax: Decimal
    vat_base: Decimal
    vat: Decimal
    total_tax: Decimal
    clearance_type: ClearanceType
    payable_vat: Decimal
    deferred_vat: Decimal
    payable_total: Decimal
    effective_tax_rate: Decimal

    def as_dict(self) -> dict:
        data = asdict(self)
        data["clearance_type"] = self.clearance_type.value
        return data


def compute_tax(
    customs_value,
    duty_rate,
    vat_rate,
    anti_dumping_rate=0,
    countervailing_rate=0,
    clearance_type: ClearanceType | str = ClearanceType.STANDARD,
) -> TaxBreakdown:
    """Run the fixed cascade: duty, anti-dumping and countervailing on the customs
    value, VAT on value plus all duties.

    Under deferred clearance the VAT is reported as deferred and nothing of it is
    payable at import; duty and other tax are always payable.
    """
    value = _non_negative(customs_value, "customs_value")
    d_rate = _non_negative(duty_rate, "duty_rate")
    v_rate = _non_negative(vat_rate, "vat_rate")
    ad_rate = _non_negative(anti_dumping_rate, "anti_dumping_rate")
    cv_rate = _non_negative(countervailing_rate, "countervailing_rate")
    try:
        clearance = ClearanceType(clearance_type)
    except ValueError:
        raise InvalidInputError("clearance_type", f"'{clearance_type}' is not standard or deferred")

    duty = value * d_rate / HUNDRED
    anti_dumping = value * ad_rate / HUNDRED
    countervailing = value * cv_rate / HUNDRED
    other_tax = anti_dumping + countervailing
    vat_base = value + duty + other_tax
    vat = vat_base * v_rate / HUNDRED
    total_tax = duty + vat + other_tax

    if clearance == ClearanceType.DEFERRED:
        payable_vat, deferred_vat = ZERO, vat
    else:
        payable_vat, deferred_vat = vat, ZERO
    payable_total = duty + other_tax + payable_vat
    effective = total_tax / value * HUNDRED if value > 0 else ZERO

    return TaxBreakdown(
        customs_value=quantize_money(value),
        duty_rate=d_rate,
        vat_rate=v_rate,
        anti_dumping_rate=ad_rate,
        countervailing_rate=cv_rate,
        duty=quantize_money(duty),
        anti_dumping=quantize_money(anti_dumping),
        countervailing=quantize_money(countervailing),
        other_tax=quantize_money(other_tax),
        vat_base=quantize_money(vat_base),
        vat=quantize_money(vat),
        total_tax=quantize_money(total_tax),
        clearance_type=clearance,
        payable_vat=quantize_money(payable_vat),
        deferred_vat=quantize_money(deferred_vat),
        payable_total=quantize_money(payable_total),
        effective_tax_rate=quantize_money(effective),
    )


@dataclass
class BatchTaxTotals:
    """Sum of per-item breakdowns. Never authoritative on its own."""

    clearance_type: ClearanceType = ClearanceType.STANDARD
    item_count: int = 0
    total_value: Decimal = ZERO
    total_customs_value: Decimal = ZERO
    total_duty: Decimal = ZERO
    total_vat: Decimal = ZERO
    total_other_tax: Decimal = ZERO
    total_tax: Decimal = ZERO
    items: list[dict] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    def add(self, breakdown: TaxBreakdown, *, declared_value: Decimal | None = None, **item_fields) -> None:
        self.item_count += 1
        self.total_value += declared_value if declared_value is not None else breakdown.customs_value
        self.total_customs_value += breakdown.customs_value
        self.total_duty += breakdown.duty
        self.total_vat += breakdown.vat
        self.total_other_tax += breakdown.other_tax
        self.total_tax += breakdown.total_tax
        self.items.append({**item_fields, **breakdown.as_dict()})

    def summary(self) -> dict:
        return clearance_summary(
            self.clearance_type, self.total_duty, self.total_vat, self.total_other_tax
        )

    def as_dict(self) -> dict:
        return {
            "item_count": self.item_count,
            "total_value": quantize_money(self.total_value),
            "total_customs_value": self.total_customs_value,
            "total_duty": self.total_duty,
            "total_vat": self.total_vat,
            "total_other_tax": self.total_other_tax,
            "total_tax": self.total_tax,
            "items": self.items,
            "errors": self.errors,
            "summary": self.summary(),
        }


def clearance_summary(
    clearance_type: ClearanceType,
    total_duty: Decimal,
    total_vat: Decimal,
    total_other_tax: Decimal,
) -> dict:
    """Split the computed VAT into what is paid at import and what is deferred."""
    if clearance_type == ClearanceType.DEFERRED:
        payable_vat, deferred_vat = ZERO, total_vat
    else:
        payable_vat, deferred_vat = total_vat, ZERO
    return {
        "clearance_type": clearance_type.value,
        "total_duty": quantize_money(total_duty),
        "total_other_tax": quantize_money(total_other_tax),
        "total_vat": quantize_money(total_vat),
        "payable_vat": quantize_money(payable_vat),
        "deferred_vat": quantize_money(deferred_vat),
        "payable_total": quantize_money(total_duty + total_other_tax + payable_vat),
    }
