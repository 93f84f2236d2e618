"""
Tax Composer - Turn resolved jurisdictions and a subtotal into a tax result.

Pure functions with no I/O - jurisdiction matches are provided as
parameters, already ordered by the resolver (type, then name).

Rules:
    - state, county, city: the FIRST match of each type applies.
    - special: EVERY match applies and the rates are summed.
    - composite rate = state + county + city + specials (absent = 0).
    - tax = subtotal * composite, rounded ONCE to 2 places, half-even.
    - total = subtotal + tax, no further rounding.

The work splits in two so a run can cache the subtotal-independent half:

    composition = compose_rates(matches)        # per (point, date)
    result = apply_to_subtotal(composition, s)  # per order

Usage:
    from decimal import Decimal
    from geotax_engines.tax import compose_tax

    result = compose_tax(matches, Decimal("100.00"))
    print(result.composite_tax_rate)  # Decimal("0.088750")
    print(result.tax_amount)          # Decimal("8.88")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID

from geotax_kernel.domain.decimal_math import (
    calc_tax,
    format_money,
    format_rate,
    round_rate,
    sum_rates,
    to_decimal,
)
from geotax_kernel.domain.values import JurisdictionMatch, JurisdictionType
from geotax_kernel.logging_config import get_logger

logger = get_logger("engines.tax")


@dataclass(frozen=True)
class TaxBreakdown:
    """Summed rate contribution per jurisdiction type (None = no match)."""

    state_rate: Decimal | None = None
    county_rate: Decimal | None = None
    city_rate: Decimal | None = None
    special_rate: Decimal | None = None

    def rate_for(self, jurisdiction_type: JurisdictionType) -> Decimal | None:
        return getattr(self, f"{jurisdiction_type.value}_rate")

    def to_json_dict(self) -> dict[str, str | None]:
        return {
            f"{t.value}_rate": (
                format_rate(self.rate_for(t)) if self.rate_for(t) is not None else None
            )
            for t in JurisdictionType
        }


@dataclass(frozen=True)
class AppliedJurisdiction:
    """A jurisdiction whose rate went into the composite."""

    jurisdiction_id: UUID
    name: str
    type: JurisdictionType
    rate: Decimal

    def to_json_dict(self) -> dict[str, str]:
        return {
            "id": str(self.jurisdiction_id),
            "name": self.name,
            "type": self.type.value,
            "rate": format_rate(self.rate),
        }


@dataclass(frozen=True)
class RateComposition:
    """
    Subtotal-independent part of a tax result for one (point, date).

    Immutable; safe to share between threads and orders.
    """

    composite_tax_rate: Decimal
    breakdown: TaxBreakdown
    jurisdictions_applied: tuple[AppliedJurisdiction, ...]

    @property
    def is_untaxed(self) -> bool:
        return not self.jurisdictions_applied

    def jurisdictions_json(self) -> list[dict[str, str]]:
        return [j.to_json_dict() for j in self.jurisdictions_applied]


@dataclass(frozen=True)
class TaxResult:
    """
    Complete tax calculation for one order.

    composite_tax_rate has 6 fractional digits; tax_amount and
    total_amount have 2.  ``total_amount - subtotal == tax_amount``.
    """

    subtotal: Decimal
    composite_tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    breakdown: TaxBreakdown
    jurisdictions_applied: tuple[AppliedJurisdiction, ...]

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "composite_tax_rate": format_rate(self.composite_tax_rate),
            "tax_amount": format_money(self.tax_amount),
            "total_amount": format_money(self.total_amount),
            "breakdown": self.breakdown.to_json_dict(),
            "jurisdictions_applied": [j.to_json_dict() for j in self.jurisdictions_applied],
        }


_FIRST_MATCH_TYPES = frozenset(
    {JurisdictionType.STATE, JurisdictionType.COUNTY, JurisdictionType.CITY}
)

EMPTY_COMPOSITION = RateComposition(
    composite_tax_rate=round_rate(Decimal("0")),
    breakdown=TaxBreakdown(),
    jurisdictions_applied=(),
)


def compose_rates(matches: Sequence[JurisdictionMatch]) -> RateComposition:
    """
    Build the composite rate, breakdown and applied list in one pass.

    ``matches`` must be in resolver order; a later state/county/city
    match of an already-seen type is skipped.
    """
    if not matches:
        return EMPTY_COMPOSITION

    first: dict[JurisdictionType, Decimal] = {}
    special: Decimal | None = None
    applied: list[AppliedJurisdiction] = []

    for match in matches:
        rate = to_decimal(match.rate)
        if match.type in _FIRST_MATCH_TYPES:
            if match.type in first:
                continue
            first[match.type] = rate
        else:
            special = rate if special is None else sum_rates(special, rate)
        applied.append(
            AppliedJurisdiction(
                jurisdiction_id=match.jurisdiction_id,
                name=match.name,
                type=match.type,
                rate=rate,
            )
        )

    breakdown = TaxBreakdown(
        state_rate=first.get(JurisdictionType.STATE),
        county_rate=first.get(JurisdictionType.COUNTY),
        city_rate=first.get(JurisdictionType.CITY),
        special_rate=special,
    )
    composite = round_rate(
        sum_rates(
            breakdown.state_rate,
            breakdown.county_rate,
            breakdown.city_rate,
            breakdown.special_rate,
        )
    )

    logger.debug(
        "rates_composed",
        extra={
            "match_count": len(matches),
            "applied_count": len(applied),
            "composite_tax_rate": composite,
        },
    )
    return RateComposition(
        composite_tax_rate=composite,
        breakdown=breakdown,
        jurisdictions_applied=tuple(applied),
    )


def apply_to_subtotal(
    composition: RateComposition,
    subtotal: str | Decimal,
) -> TaxResult:
    """Price one order against a composition; rounding happens here, once."""
    sub = to_decimal(subtotal)
    tax_amount, total_amount = calc_tax(sub, composition.composite_tax_rate)
    return TaxResult(
        subtotal=sub,
        composite_tax_rate=composition.composite_tax_rate,
        tax_amount=tax_amount,
        total_amount=total_amount,
        breakdown=composition.breakdown,
        jurisdictions_applied=composition.jurisdictions_applied,
    )


def compose_tax(
    matches: Sequence[JurisdictionMatch],
    subtotal: str | Decimal,
) -> TaxResult:
    """Resolver result + subtotal -> TaxResult."""
    return apply_to_subtotal(compose_rates(matches), subtotal)
