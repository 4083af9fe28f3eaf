"""
Delivery Pricing Engine.

Turns delivery attributes into an itemised cost breakdown.

Formula:
1. subtotal = base fare + distance fee
2. Percentage surcharges on the subtotal (fragile, insurance, after-hours, weekend)
3. total = subtotal + surcharges, floored at the minimum charge
4. total is split into company commission and driver earnings

Pure and deterministic: no clock, no I/O. The after-hours and weekend flags
are supplied by the caller (see time_flags.py).
"""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from pydantic import BaseModel, Field

from delivery_backend.app.core.config import settings
from delivery_backend.app.core.exceptions import ValidationError


class PricingConfig(BaseModel):
    """Rates used by the engine. Percentages are whole numbers (20 == 20%)."""
    base_fare: int = Field(80, ge=0)
    per_km_rate: int = Field(11, ge=0)
    minimum_charge: int = Field(150, ge=0)
    max_distance_km: int = Field(1000, gt=0)
    fragile_pct: int = Field(20, ge=0)
    insurance_pct: int = Field(20, ge=0)
    after_hours_pct: int = Field(10, ge=0)
    weekend_pct: int = Field(10, ge=0)
    commission_pct: int = Field(15, ge=0, le=100)

    class Config:
        frozen = True

    @classmethod
    def from_settings(cls) -> "PricingConfig":
        return cls(
            base_fare=settings.base_fare,
            per_km_rate=settings.per_km_rate,
            minimum_charge=settings.minimum_charge,
            max_distance_km=settings.max_distance_km,
            fragile_pct=settings.fragile_surcharge_pct,
            insurance_pct=settings.insurance_surcharge_pct,
            after_hours_pct=settings.after_hours_surcharge_pct,
            weekend_pct=settings.weekend_surcharge_pct,
            commission_pct=settings.company_commission_pct,
        )


class PricingOptions(BaseModel):
    """Inputs to a single price calculation."""
    distance: float
    is_fragile: bool = False
    has_insurance: bool = False
    is_after_hours: bool = False
    is_weekend: bool = False

    class Config:
        frozen = True


class PriceBreakdown(BaseModel):
    """
    Itemised price. All amounts are whole currency units.

    Invariants:
        total >= minimum charge
        driver_earnings + company_commission == total
    """
    base_fare: int
    distance_fee: int
    subtotal: int
    fragile_charge: int = 0
    insurance_charge: int = 0
    after_hours_charge: int = 0
    weekend_charge: int = 0
    total: int
    driver_earnings: int
    company_commission: int

    class Config:
        frozen = True

    @property
    def surcharges(self) -> int:
        return self.fragile_charge + self.insurance_charge + self.after_hours_charge + self.weekend_charge


Number = Union[int, float, Decimal]


def round_units(amount: Number) -> int:
    """Round half-up to a whole currency unit."""
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _percent_of(amount: int, pct: int) -> int:
    return round_units(Decimal(amount) * Decimal(pct) / Decimal(100))


class PricingEngine:

    def __init__(self, config: Optional[PricingConfig] = None):
        self.config = config or PricingConfig.from_settings()

    def calculate(self, options: PricingOptions) -> PriceBreakdown:
        """
        Compute the price breakdown for a delivery.

        Every charge is rounded before summation so the displayed
        components always add up to the displayed total.

        Raises:
            ValidationError: If distance is not a finite positive number up
                to the configured maximum.
        """
        cfg = self.config

        if options.distance is None or not math.isfinite(options.distance) or options.distance <= 0:
            raise ValidationError(
                f"Distance must be greater than 0 km, got {options.distance}",
                field="distance"
            )
        if options.distance > cfg.max_distance_km:
            raise ValidationError(
                f"Distance must not exceed {cfg.max_distance_km} km, got {options.distance}",
                field="distance"
            )

        distance_fee = round_units(Decimal(str(options.distance)) * cfg.per_km_rate)
        subtotal = cfg.base_fare + distance_fee

        fragile_charge = _percent_of(subtotal, cfg.fragile_pct) if options.is_fragile else 0
        insurance_charge = _percent_of(subtotal, cfg.insurance_pct) if options.has_insurance else 0
        after_hours_charge = _percent_of(subtotal, cfg.after_hours_pct) if options.is_after_hours else 0
        weekend_charge = _percent_of(subtotal, cfg.weekend_pct) if options.is_weekend else 0

        raw_total = subtotal + fragile_charge + insurance_charge + after_hours_charge + weekend_charge
        total = max(raw_total, cfg.minimum_charge)

        company_commission = _percent_of(total, cfg.commission_pct)
        driver_earnings = total - company_commission

        return PriceBreakdown(
            base_fare=cfg.base_fare,
            distance_fee=distance_fee,
            subtotal=subtotal,
            fragile_charge=fragile_charge,
            insurance_charge=insurance_charge,
            after_hours_charge=after_hours_charge,
            weekend_charge=weekend_charge,
            total=total,
            driver_earnings=driver_earnings,
            company_commission=company_commission,
        )

    def format_breakdown(self, breakdown: PriceBreakdown, distance: float, currency: str = None) -> str:
        """Customer-facing text summary. Zero surcharges are omitted."""
        cfg = self.config
        cur = currency or settings.currency_label

        lines = [
            f"Base fare: {cur} {breakdown.base_fare}",
            f"Distance ({distance:g} km): {cur} {breakdown.distance_fee}",
            f"Subtotal: {cur} {breakdown.subtotal}",
        ]
        surcharge_lines = (
            ("Fragile handling", cfg.fragile_pct, breakdown.fragile_charge),
            ("Insurance cover", cfg.insurance_pct, breakdown.insurance_charge),
            ("After-hours delivery", cfg.after_hours_pct, breakdown.after_hours_charge),
            ("Weekend delivery", cfg.weekend_pct, breakdown.weekend_charge),
        )
        for label, pct, amount in surcharge_lines:
            if amount > 0:
                lines.append(f"{label} ({pct}%): +{cur} {amount}")

        raw_total = breakdown.subtotal + breakdown.surcharges
        if breakdown.total > raw_total:
            lines.append(f"Minimum charge applied: {cur} {cfg.minimum_charge}")

        lines.append("")
        lines.append(f"Total: {cur} {breakdown.total}")
        return "\n".join(lines)
