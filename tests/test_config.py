import pytest

from bursar.core.config import Settings, settings
from bursar.tax.statutory import StatutoryDeductionCalculator, StatutoryRates

def test_default_rates_match_settings():
    rates = settings.statutory_rates()
    assert rates == StatutoryRates.from_settings(settings)
    assert rates.personal_relief == 2400
    assert rates.pension.upper_ceiling == 36000
    assert rates.nhif_bands[0].upper == 6000
    assert rates.nhif_max_fee == 1700

def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PERSONAL_RELIEF_MONTHLY", "0")
    monkeypatch.setenv("PAYE_BANDS", "[[10000, 0.1]]")
    monkeypatch.setenv("PAYE_TOP_RATE", "0.2")
    s = Settings()
    calc = StatutoryDeductionCalculator(s.statutory_rates())
    assert calc.compute_income_tax(20000) == pytest.approx(1000 + 2000)

def test_bad_env_table_rejected(monkeypatch):
    monkeypatch.setenv("NSSF_TIER_2_UPPER", "1000")
    with pytest.raises(ValueError):
        Settings().statutory_rates()
