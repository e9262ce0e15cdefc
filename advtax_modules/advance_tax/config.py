"""
Advance Tax Configuration Schema.

Defines the operational settings of the advance tax service with sensible
defaults.  Statutory parameters (rates, installments, interest) are NOT
here; they come from the policy YAML via ``advtax_config``.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from advtax_kernel.logging_config import get_logger

logger = get_logger("modules.advance_tax.config")


@dataclass
class AdvanceTaxConfig:
    """
    Configuration schema for the advance tax module.

    Override at instantiation with deployment-specific values:

        config = AdvanceTaxConfig(
            journal_retry_attempts=5,
            lock_timeout_seconds=2.0,
        )
    """

    # Journal posting
    post_journal_by_default: bool = True
    journal_retry_attempts: int = 3

    # Concurrency
    lock_timeout_seconds: float = 5.0

    # Revision recommendation
    revision_variance_threshold_pct: Decimal = Decimal("10")

    # MAT credit register: credits expiring within this many years are flagged
    mat_credit_expiry_warning_years: int = 2

    # Defaults for new assessments
    default_tax_regime: str = "normal"
    auto_project_from_trend: bool = True

    def __post_init__(self):
        if self.journal_retry_attempts < 1:
            raise ValueError("journal_retry_attempts must be at least 1")

        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be positive")

        if self.revision_variance_threshold_pct < 0:
            raise ValueError("revision_variance_threshold_pct cannot be negative")

        if self.mat_credit_expiry_warning_years < 0:
            raise ValueError("mat_credit_expiry_warning_years cannot be negative")

        if not self.default_tax_regime or not self.default_tax_regime.strip():
            raise ValueError("default_tax_regime cannot be empty")

        logger.info(
            "advance_tax_config_initialized",
            extra={
                "post_journal_by_default": self.post_journal_by_default,
                "journal_retry_attempts": self.journal_retry_attempts,
                "lock_timeout_seconds": self.lock_timeout_seconds,
                "revision_variance_threshold_pct": str(self.revision_variance_threshold_pct),
                "default_tax_regime": self.default_tax_regime,
                "mat_credit_expiry_warning_years": self.mat_credit_expiry_warning_years,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard defaults."""
        logger.info("advance_tax_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from database/file)."""
        logger.info(
            "advance_tax_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        if "revision_variance_threshold_pct" in data:
            data["revision_variance_threshold_pct"] = Decimal(
                str(data["revision_variance_threshold_pct"])
            )
        return cls(**data)
