"""
Configuration loader (``tenancy_config.loader``).

Reads a YAML file and parses it into ``LedgerSettings``.  Callers use
``tenancy_config.get_active_config()``; this module is its implementation.

Failure modes
-------------
* Missing YAML file  -> ``ConfigError``.
* Malformed YAML  -> ``ConfigError`` wrapping ``yaml.YAMLError``.
* Unknown account type or invalid values  -> ``ConfigError``.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from tenancy_config.schema import AccountCodes, ChartAccountDef, LedgerSettings
from tenancy_kernel.exceptions import ConfigError
from tenancy_kernel.models.account import AccountType


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file; an empty file yields an empty dict."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigError("configuration file not found", str(path)) from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML: {exc}", str(path)) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("top level must be a mapping", str(path))
    return data


def parse_account(data: dict[str, Any]) -> ChartAccountDef:
    try:
        account_type = AccountType(data["type"])
    except KeyError as exc:
        raise ConfigError(f"chart account missing field {exc}") from exc
    except ValueError as exc:
        raise ConfigError(f"unknown account type {data.get('type')!r}") from exc
    if "code" not in data or "name" not in data:
        raise ConfigError(f"chart account needs code and name: {data}")
    return ChartAccountDef(
        code=str(data["code"]),
        name=str(data["name"]),
        account_type=account_type,
        parent_code=str(data["parent"]) if data.get("parent") else None,
    )


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """Build LedgerSettings from a parsed YAML mapping."""
    codes = data.get("account_codes") or {}
    unknown = set(codes) - set(AccountCodes.__dataclass_fields__)
    if unknown:
        raise ConfigError(f"unknown account_codes keys: {sorted(unknown)}")

    try:
        tolerance = Decimal(str(data.get("balance_tolerance", "0.01")))
    except InvalidOperation as exc:
        raise ConfigError("balance_tolerance must be a number") from exc

    kwargs: dict[str, Any] = {
        "account_codes": AccountCodes(**{k: str(v) for k, v in codes.items()}),
        "balance_tolerance": tolerance,
        "chart_of_accounts": tuple(
            parse_account(a) for a in data.get("chart_of_accounts") or ()
        ),
    }
    if "currency" in data:
        kwargs["currency"] = str(data["currency"])
    if "bank_payment_keywords" in data:
        kwargs["bank_payment_keywords"] = tuple(
            str(k).lower() for k in data["bank_payment_keywords"]
        )
    if "allocation_category_order" in data:
        kwargs["allocation_category_order"] = tuple(data["allocation_category_order"])
    return LedgerSettings(**kwargs)
