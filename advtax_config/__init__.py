"""
advtax_config -- single public entrypoint for the statutory policy.

Responsibility:
    Provides the ONLY way to obtain statutory parameters at runtime through
    ``get_active_policy()``.  No other component reads the policy YAML.
    Engine inputs are derived from the returned ``AdvanceTaxPolicy`` by
    ``advtax_config.bridges``.

Architecture position:
    Configuration -- YAML-driven policy, sits above ``advtax_kernel`` and
    ``advtax_engines`` and below ``advtax_modules``.  The kernel and the
    engines MUST NEVER import from ``advtax_config``.

Invariants enforced:
    - Single entrypoint: all runtime policy flows through ``get_active_policy()``.
    - Effective dating: exactly one policy governs a given date; the latest
      ``effective_from`` wins when windows overlap.
    - Deterministic identity: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the policy file does not exist.
    - ``ValueError`` -- no policy is effective on the requested date, or
      the YAML fails to parse.

Audit relevance:
    Every ``get_active_policy()`` call emits an ``ADVTAX_CONFIG_TRACE`` log
    entry with the policy id, version and checksum, tying each computed
    assessment to the exact parameters that produced it.
"""

from __future__ import annotations

import functools
from datetime import date
from pathlib import Path

from advtax_config.loader import load_policies
from advtax_config.schema import AdvanceTaxPolicy
from advtax_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_POLICY_PATH = Path(__file__).parent / "defaults" / "advance_tax.yaml"


@functools.lru_cache(maxsize=8)
def _cached_policies(path: str) -> tuple[AdvanceTaxPolicy, ...]:
    return load_policies(Path(path))


def clear_policy_cache() -> None:
    """Drop parsed policies (tests that rewrite policy files)."""
    _cached_policies.cache_clear()


def get_active_policy(as_of_date: date, path: Path | None = None) -> AdvanceTaxPolicy:
    """The ONLY public policy entrypoint.

    Args:
        as_of_date: Date the policy must be effective on.  Services pass the
            first day of the assessment's financial year.
        path: Override path to the policy YAML.  Defaults to the bundled
            ``defaults/advance_tax.yaml``.

    Raises:
        FileNotFoundError: If the policy file does not exist.
        ValueError: If no policy is effective on ``as_of_date``.
    """
    policy_path = (path or DEFAULT_POLICY_PATH).resolve()
    policies = _cached_policies(str(policy_path))

    candidates = [p for p in policies if p.is_effective_on(as_of_date)]
    if not candidates:
        raise ValueError(
            f"No advance tax policy effective on {as_of_date.isoformat()} in {policy_path}"
        )
    policy = max(candidates, key=lambda p: (p.effective_from, p.version))

    _logger.info(
        "ADVTAX_CONFIG_TRACE",
        extra={
            "trace_type": "ADVTAX_CONFIG_TRACE",
            "policy_id": policy.policy_id,
            "policy_version": policy.version,
            "checksum": policy.checksum,
            "as_of_date": as_of_date.isoformat(),
            "regime_count": len(policy.regimes),
            "installment_count": len(policy.installments),
        },
    )
    return policy


__all__ = [
    "DEFAULT_POLICY_PATH",
    "AdvanceTaxPolicy",
    "clear_policy_cache",
    "get_active_policy",
]
