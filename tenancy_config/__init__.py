"""
tenancy_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain account codes,
    payment-method routing and the chart-of-accounts seed.  YAML parsing is
    internal to this package.

Architecture position:
    Configuration.  Sits above ``tenancy_kernel`` and below
    ``tenancy_modules``.  The kernel never imports from here.

Failure modes:
    - ``ConfigError`` for a missing file, malformed YAML or invalid values.
"""

from __future__ import annotations

import os
from pathlib import Path

from tenancy_config.loader import load_yaml_file, parse_settings
from tenancy_config.schema import AccountCodes, ChartAccountDef, LedgerSettings
from tenancy_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

# Overrides the default file when set
CONFIG_ENV_VAR = "TENANCY_LEDGER_CONFIG"


def get_active_config(path: str | Path | None = None) -> LedgerSettings:
    """
    Load and validate the ledger configuration.

    Resolution order: explicit ``path``, then ``$TENANCY_LEDGER_CONFIG``,
    then the packaged ``defaults.yaml``.
    """
    resolved = Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    settings = parse_settings(load_yaml_file(resolved))
    logger.info(
        "config_loaded",
        extra={
            "path": str(resolved),
            "currency": settings.currency,
            "account_count": len(settings.chart_of_accounts),
        },
    )
    return settings


__all__ = [
    "AccountCodes",
    "ChartAccountDef",
    "LedgerSettings",
    "get_active_config",
    "DEFAULT_CONFIG_PATH",
]
