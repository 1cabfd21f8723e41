from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Tuple

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = Field("Bursar", description="Logger namespace and app label")
    LOG_LEVEL: str = Field("INFO", description="Root level for bursar loggers")
    AUDIT_LOG_PATH: str = Field("./data/logs", description="Directory for log and audit files")
    DEFAULT_CURRENCY: str = "KES"
    DEFAULT_DAYS_IN_MONTH: int = 30

    @field_validator("LOG_LEVEL")
    @classmethod
    def known_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {LOG_LEVELS}, got {v}")
        return v

    # PAYE (Kenya, monthly). Each band is (width, rate); income past the
    # last band is taxed at PAYE_TOP_RATE.
    PAYE_BANDS: List[Tuple[float, float]] = [
        (24000, 0.10),
        (8333, 0.25),
    ]
    PAYE_TOP_RATE: float = 0.30
    PERSONAL_RELIEF_MONTHLY: float = 2400.0

    # NHIF: (upper bound exclusive, fee)
    NHIF_BANDS: List[Tuple[float, float]] = [
        (6000, 150),
        (8000, 300),
        (12000, 400),
        (15000, 500),
        (20000, 600),
        (25000, 750),
        (30000, 850),
        (35000, 900),
        (40000, 950),
        (45000, 1000),
        (50000, 1100),
        (60000, 1200),
        (70000, 1300),
        (80000, 1400),
        (90000, 1500),
        (100000, 1600),
    ]
    NHIF_MAX_FEE: float = 1700

    # NSSF employee contribution, Tier I up to 7,000 and Tier II up to 36,000
    NSSF_RATE: float = 0.06
    NSSF_TIER_1_UPPER: float = 7000.0
    NSSF_TIER_2_UPPER: float = 36000.0

    def statutory_rates(self):
        from bursar.tax.statutory import StatutoryRates
        return StatutoryRates.from_settings(self)

settings = Settings()
