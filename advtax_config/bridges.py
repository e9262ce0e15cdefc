"""
Config -> Engine Bridges.

Functions that convert an ``AdvanceTaxPolicy`` into engine inputs.  These
live in advtax_config (the producer) because engines and the kernel must
never import advtax_config.

Usage:
    from advtax_config import get_active_policy
    from advtax_config.bridges import build_regime_table, build_schedule_generator

    policy = get_active_policy(fy.start_date)
    regimes = build_regime_table(policy)
    generator = build_schedule_generator(policy)
"""

from __future__ import annotations

from advtax_config.schema import AdvanceTaxPolicy, RegimeDef
from advtax_engines.interest import InterestCalculator
from advtax_engines.liability import SurchargeSlab, TaxRegimeRates
from advtax_engines.mat import MatPolicy
from advtax_engines.schedule import InstallmentRule, ScheduleGenerator
from advtax_kernel.exceptions import UnknownTaxRegimeError


def _regime_rates(regime: RegimeDef) -> TaxRegimeRates:
    return TaxRegimeRates(
        code=regime.code,
        description=regime.description,
        base_rate=regime.base_rate,
        cess_rate=regime.cess_rate,
        surcharge_slabs=tuple(
            SurchargeSlab(above=slab.above, rate=slab.rate)
            for slab in sorted(regime.surcharge_slabs, key=lambda s: s.above)
        ),
    )


def build_regime_table(policy: AdvanceTaxPolicy) -> dict[str, TaxRegimeRates]:
    """Regime code -> engine rate table."""
    return {regime.code: _regime_rates(regime) for regime in policy.regimes}


def resolve_regime(policy: AdvanceTaxPolicy, code: str) -> TaxRegimeRates:
    """
    Rate table for one regime.

    Raises:
        UnknownTaxRegimeError: If the policy has no such regime.
    """
    regime = policy.regime(code)
    if regime is None:
        raise UnknownTaxRegimeError(code, known=policy.regime_codes)
    return _regime_rates(regime)


def build_installment_rules(policy: AdvanceTaxPolicy) -> tuple[InstallmentRule, ...]:
    return tuple(
        InstallmentRule(
            quarter=i.quarter,
            due_month=i.due_month,
            due_day=i.due_day,
            cumulative_percentage=i.cumulative_percentage,
            interest_months=i.interest_months,
        )
        for i in sorted(policy.installments, key=lambda i: i.quarter)
    )


def build_interest_calculator(policy: AdvanceTaxPolicy) -> InterestCalculator:
    return InterestCalculator(monthly_rate=policy.interest.monthly_rate)


def build_schedule_generator(policy: AdvanceTaxPolicy) -> ScheduleGenerator:
    """Schedule generator sharing the policy's interest calculator settings."""
    return ScheduleGenerator(
        rules=build_installment_rules(policy),
        interest_calculator=build_interest_calculator(policy),
    )


def build_mat_policy(policy: AdvanceTaxPolicy) -> MatPolicy:
    return MatPolicy(
        rate=policy.mat.rate,
        surcharge_rate=policy.mat.surcharge_rate,
        surcharge_threshold=policy.mat.surcharge_threshold,
        cess_rate=policy.mat.cess_rate,
        eligible_regimes=frozenset(policy.mat.eligible_regimes),
        credit_carry_forward_years=policy.mat.credit_carry_forward_years,
    )
