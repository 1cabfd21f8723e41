"""
Kenyan statutory payroll deductions: PAYE, NHIF and NSSF.

All three are computed from monthly gross pay against a StatutoryRates
table. Calculators hold no mutable state and can be shared across threads.
"""
import logging
import math
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Dict, Iterable, Tuple

from bursar.core.config import settings
from bursar.core.errors import InvalidArgument, InvalidRateTable

logger = logging.getLogger(f"{settings.APP_NAME}.tax")


@dataclass(frozen=True)
class TaxBand:
    """A progressive PAYE band: `width` shillings taxed at `rate`."""
    width: float
    rate: float


@dataclass(frozen=True)
class LevyBand:
    """An NHIF step: salaries strictly below `upper` pay `fee`."""
    upper: float
    fee: float


@dataclass(frozen=True)
class PensionTiers:
    rate: float
    lower_ceiling: float
    upper_ceiling: float

    @property
    def max_contribution(self) -> float:
        return self.lower_ceiling * self.rate + (self.upper_ceiling - self.lower_ceiling) * self.rate


@dataclass(frozen=True)
class StatutoryRates:
    """Complete set of bracket tables used by the calculator."""
    paye_bands: Tuple[TaxBand, ...]
    paye_top_rate: float
    personal_relief: float
    nhif_bands: Tuple[LevyBand, ...]
    nhif_max_fee: float
    pension: PensionTiers

    def __post_init__(self):
        # normalise lists passed in by callers so the instance stays hashable
        object.__setattr__(self, "paye_bands", tuple(self.paye_bands))
        object.__setattr__(self, "nhif_bands", tuple(self.nhif_bands))
        self._validate()

    def _validate(self):
        if not self.paye_bands:
            raise InvalidRateTable("PAYE table needs at least one band")
        for band in self.paye_bands:
            if band.width <= 0:
                raise InvalidRateTable(f"PAYE band width must be positive, got {band.width}")
            _check_rate(band.rate, "PAYE band")
        _check_rate(self.paye_top_rate, "PAYE top")
        if self.personal_relief < 0:
            raise InvalidRateTable("Personal relief cannot be negative")

        previous = 0.0
        for band in self.nhif_bands:
            if band.upper <= previous:
                raise InvalidRateTable(
                    f"NHIF bounds must strictly increase: {band.upper} after {previous}"
                )
            if band.fee < 0:
                raise InvalidRateTable(f"NHIF fee cannot be negative, got {band.fee}")
            previous = band.upper
        if self.nhif_max_fee < 0:
            raise InvalidRateTable("NHIF maximum fee cannot be negative")

        _check_rate(self.pension.rate, "NSSF")
        if not 0 < self.pension.lower_ceiling < self.pension.upper_ceiling:
            raise InvalidRateTable("NSSF ceilings must satisfy 0 < tier 1 < tier 2")

    @classmethod
    def from_settings(cls, s=None) -> "StatutoryRates":
        s = s or settings
        return cls(
            paye_bands=tuple(TaxBand(w, r) for w, r in s.PAYE_BANDS),
            paye_top_rate=s.PAYE_TOP_RATE,
            personal_relief=s.PERSONAL_RELIEF_MONTHLY,
            nhif_bands=tuple(LevyBand(u, f) for u, f in s.NHIF_BANDS),
            nhif_max_fee=s.NHIF_MAX_FEE,
            pension=PensionTiers(s.NSSF_RATE, s.NSSF_TIER_1_UPPER, s.NSSF_TIER_2_UPPER),
        )

    def scaled(self, factor: float) -> "StatutoryRates":
        """Rebase every monetary constant by `factor`, e.g. 100 for cents."""
        if factor <= 0:
            raise InvalidArgument(f"Scale factor must be positive, got {factor}")
        return StatutoryRates(
            paye_bands=tuple(TaxBand(b.width * factor, b.rate) for b in self.paye_bands),
            paye_top_rate=self.paye_top_rate,
            personal_relief=self.personal_relief * factor,
            nhif_bands=tuple(LevyBand(b.upper * factor, b.fee * factor) for b in self.nhif_bands),
            nhif_max_fee=self.nhif_max_fee * factor,
            pension=PensionTiers(
                self.pension.rate,
                self.pension.lower_ceiling * factor,
                self.pension.upper_ceiling * factor,
            ),
        )


def _check_rate(rate: float, label: str):
    if not 0 <= rate <= 1:
        raise InvalidRateTable(f"{label} rate must be between 0 and 1, got {rate}")


def validate_gross(gross) -> float:
    """Return `gross` as a float or raise InvalidArgument."""
    if isinstance(gross, bool) or not isinstance(gross, (int, float, Decimal)):
        raise InvalidArgument(f"Gross salary must be numeric, got {type(gross).__name__}")
    value = float(gross)
    if not math.isfinite(value):
        raise InvalidArgument(f"Gross salary must be finite, got {gross}")
    if value < 0:
        raise InvalidArgument(f"Gross salary cannot be negative, got {gross}")
    return value


@dataclass(frozen=True)
class DeductionResult:
    gross: float
    paye: float
    nhif: float
    nssf: float
    total_deductions: float
    net_salary: float

    def rounded(self, ndigits: int = 2) -> "DeductionResult":
        return DeductionResult(**{k: round(v, ndigits) for k, v in asdict(self).items()})

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


class StatutoryDeductionCalculator:
    def __init__(self, rates: StatutoryRates = None):
        self.rates = rates or StatutoryRates.from_settings()

    def compute_income_tax(self, gross) -> float:
        """
        Progressive PAYE less personal relief, never below zero.

        Bands are consumed in order; the walk stops at the first band that
        absorbs the remaining pay, so the top rate applies only once every
        band is full.
        """
        remainder = validate_gross(gross)
        tax = 0.0
        for band in self.rates.paye_bands:
            if remainder > band.width:
                tax += band.width * band.rate
                remainder -= band.width
            else:
                tax += remainder * band.rate
                remainder = 0.0
                break
        else:
            tax += remainder * self.rates.paye_top_rate
        return max(0.0, tax - self.rates.personal_relief)

    def compute_health_levy(self, gross) -> float:
        """NHIF flat fee for the band containing `gross`. No pay, no levy."""
        gross = validate_gross(gross)
        if gross == 0:
            return 0.0
        for band in self.rates.nhif_bands:
            if gross < band.upper:
                return float(band.fee)
        return float(self.rates.nhif_max_fee)

    def compute_pension_contribution(self, gross) -> float:
        gross = validate_gross(gross)
        tiers = self.rates.pension
        tier1 = min(gross, tiers.lower_ceiling) * tiers.rate
        tier2 = 0.0
        if gross > tiers.lower_ceiling:
            tier2 = max(0.0, min(gross, tiers.upper_ceiling) - tiers.lower_ceiling) * tiers.rate
        return tier1 + tier2

    # short names used across payroll code
    compute_paye = compute_income_tax
    compute_nhif = compute_health_levy
    compute_nssf = compute_pension_contribution

    def calculate(self, gross) -> DeductionResult:
        gross = validate_gross(gross)
        paye = self.compute_income_tax(gross)
        nhif = self.compute_health_levy(gross)
        nssf = self.compute_pension_contribution(gross)
        total = paye + nhif + nssf
        result = DeductionResult(
            gross=gross,
            paye=paye,
            nhif=nhif,
            nssf=nssf,
            total_deductions=total,
            net_salary=gross - total,
        )
        logger.debug("Deductions for gross %.2f: %s", gross, result)
        return result

    def calculate_many(self, grosses: Iterable) -> list:
        return [self.calculate(g) for g in grosses]
