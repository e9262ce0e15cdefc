"""
Configuration Loader (``advtax_config.loader``).

Responsibility
--------------
Loads the advance tax policy YAML and parses it into typed
``advtax_config.schema`` dataclass instances.  Runtime callers use
``advtax_config.get_active_policy()``; the loader is exposed for tests
and tooling.

Architecture position
---------------------
**Config layer**.  Depends only on the schema; no kernel, engine or
module imports.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* Money and rates are parsed into ``Decimal`` from their string form,
  never through binary floats.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid date or number  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from advtax_config.schema import (
    AdvanceTaxPolicy,
    InstallmentDef,
    InterestDef,
    MatDef,
    RegimeDef,
    SurchargeSlabDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a Decimal from a YAML string or number."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: invalid number {value!r}") from exc


def parse_regime(data: dict[str, Any]) -> RegimeDef:
    code = str(data["code"])
    slabs = tuple(
        SurchargeSlabDef(
            above=parse_decimal(s["above"], f"regimes.{code}.surcharge_slabs.above"),
            rate=parse_decimal(s["rate"], f"regimes.{code}.surcharge_slabs.rate"),
        )
        for s in data.get("surcharge_slabs", [])
    )
    return RegimeDef(
        code=code,
        description=data.get("description", ""),
        base_rate=parse_decimal(data["base_rate"], f"regimes.{code}.base_rate"),
        cess_rate=parse_decimal(data["cess_rate"], f"regimes.{code}.cess_rate"),
        surcharge_slabs=slabs,
    )


def parse_installment(data: dict[str, Any]) -> InstallmentDef:
    return InstallmentDef(
        quarter=int(data["quarter"]),
        due_month=int(data["due_month"]),
        due_day=int(data["due_day"]),
        cumulative_percentage=parse_decimal(
            data["cumulative_percentage"], "installments.cumulative_percentage",
        ),
        interest_months=int(data["interest_months"]),
    )


def parse_mat(data: dict[str, Any]) -> MatDef:
    return MatDef(
        rate=parse_decimal(data["rate"], "mat.rate"),
        surcharge_rate=parse_decimal(data["surcharge_rate"], "mat.surcharge_rate"),
        surcharge_threshold=parse_decimal(data["surcharge_threshold"], "mat.surcharge_threshold"),
        cess_rate=parse_decimal(data["cess_rate"], "mat.cess_rate"),
        eligible_regimes=tuple(str(code) for code in data.get("eligible_regimes", ())),
        credit_carry_forward_years=int(data.get("credit_carry_forward_years", 15)),
    )


def parse_policy(data: dict[str, Any]) -> AdvanceTaxPolicy:
    """
    Parse an ``AdvanceTaxPolicy`` from a dict.

    Raises:
        KeyError: if required keys are missing.
        ValueError: if dates or numbers cannot be parsed, or regime codes
            or quarters are duplicated.
    """
    regimes = tuple(parse_regime(r) for r in data["regimes"])
    codes = [r.code for r in regimes]
    if len(set(codes)) != len(codes):
        raise ValueError(f"Policy {data.get('policy_id')}: duplicate regime codes {codes}")

    installments = tuple(parse_installment(i) for i in data["installments"])
    quarters = [i.quarter for i in installments]
    if len(set(quarters)) != len(quarters):
        raise ValueError(f"Policy {data.get('policy_id')}: duplicate installment quarters")

    interest_data = data.get("interest", {})
    interest = InterestDef(
        monthly_rate=parse_decimal(interest_data.get("monthly_rate", "0.01"), "interest.monthly_rate"),
    )

    return AdvanceTaxPolicy(
        policy_id=data["policy_id"],
        version=data.get("version", 1),
        description=data.get("description", ""),
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_date(data["effective_to"]) if data.get("effective_to") else None,
        interest=interest,
        installments=installments,
        regimes=regimes,
        mat=parse_mat(data["mat"]),
        checksum=compute_checksum(data),
    )


def load_policies(path: Path) -> tuple[AdvanceTaxPolicy, ...]:
    """Load and parse every policy in a YAML file."""
    document = load_yaml_file(path)
    return tuple(parse_policy(p) for p in document.get("policies", []))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
