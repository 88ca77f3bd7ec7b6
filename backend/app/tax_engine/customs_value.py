"""Customs (CIF) value from trade terms — pure functions.

Converts an invoice value quoted under an Incoterms 2020 rule into the CIF-basis
customs value duties are assessed on, and spreads batch-level freight and
insurance over line items.
"""

from decimal import Decimal

from app.exceptions import InvalidInputError
from app.models.cargo import AllocationMethod
from app.tax_engine.calculator import HUNDRED, ZERO, quantize_money, to_decimal

# Which cost legs each rule's invoice price still lacks (+) or already includes (-)
INCOTERM_GROUPS = {
    "cif": {"CIF", "CIP"},
    "add_insurance": {"CFR", "CPT"},
    "add_freight": {"FOB", "FCA", "FAS"},
    "ex_works": {"EXW"},
    "delivered": {"DAP", "DDU"},
    "delivered_unloaded": {"DPU"},
    "duty_paid": {"DDP"},
}

SUPPORTED_INCOTERMS = frozenset().union(*INCOTERM_GROUPS.values())


def _group_of(incoterm: str) -> str:
    term = (incoterm or "").strip().upper()
    for group, terms in INCOTERM_GROUPS.items():
        if term in terms:
            return group
    raise InvalidInputError("incoterm", f"'{incoterm}' is not a supported Incoterms rule")


def calculate_customs_value(
    incoterm: str,
    invoice_value,
    *,
    international_freight=0,
    domestic_freight_export=0,
    domestic_freight_import=0,
    unloading_cost=0,
    insurance_cost=0,
    duty_rate=0,
    vat_rate=0,
    insurance_rate: Decimal = Decimal("0.003"),
) -> Decimal:
    """CIF-basis customs value, floored at zero and rounded to the cent.

    Insurance, when not given, defaults to ``insurance_rate`` of the invoice value.
    DDP prices include duty and VAT, so they are backed out of the price.
    """
    group = _group_of(incoterm)
    value = to_decimal(invoice_value, "invoice_value")
    freight = to_decimal(international_freight, "international_freight")
    export_leg = to_decimal(domestic_freight_export, "domestic_freight_export")
    import_leg = to_decimal(domestic_freight_import, "domestic_freight_import")
    unloading = to_decimal(unloading_cost, "unloading_cost")
    insurance = to_decimal(insurance_cost, "insurance_cost")
    if insurance == 0:
        insurance = value * Decimal(str(insurance_rate))

    if group == "cif":
        customs_value = value
    elif group == "add_insurance":
        customs_value = value + insurance
    elif group == "add_freight":
        customs_value = value + freight + insurance
    elif group == "ex_works":
        customs_value = value + export_leg + freight + insurance
    elif group == "delivered":
        customs_value = value - import_leg
    elif group == "delivered_unloaded":
        customs_value = value - import_leg - unloading
    else:
        duty = to_decimal(duty_rate, "duty_rate") / HUNDRED
        vat = to_decimal(vat_rate, "vat_rate") / HUNDRED
        customs_value = (value - import_leg) / ((1 + duty) * (1 + vat))

    return quantize_money(max(customs_value, ZERO))


def allocate_costs(
    items: list[dict],
    costs: dict[str, object],
    method: AllocationMethod | str = AllocationMethod.BY_VALUE,
) -> list[dict[str, Decimal]]:
    """Split batch-level cost legs over items by value or by gross weight.

    ``items`` carry ``value`` and ``weight``; ``costs`` maps a cost name to its batch
    total. Returns one {cost name: share} dict per item, in input order. An all-zero
    base splits equally.
    """
    if not items:
        return []
    method = AllocationMethod(method)
    totals = {name: to_decimal(amount, name) for name, amount in costs.items()}
    key = "weight" if method == AllocationMethod.BY_WEIGHT else "value"
    bases = [to_decimal(item.get(key), key) for item in items]
    total_base = sum(bases, ZERO)

    shares = []
    for base in bases[:-1]:
        ratio = base / total_base if total_base > 0 else Decimal(1) / len(items)
        shares.append({name: quantize_money(total * ratio) for name, total in totals.items()})
    # last item absorbs rounding so shares sum to each leg total
    shares.append({
        name: quantize_money(total) - sum((share[name] for share in shares), ZERO)
        for name, total in totals.items()
    })
    return shares
