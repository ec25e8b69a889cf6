"""Versioned vendor rules tables shipped with the service.

Each policy reads one JSON table from ``policy_api/rules``. Tables are loaded
once per process and treated as read-only.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

RULES_DIR = Path(__file__).resolve().parents[1] / "rules"

RULES_FILES = {
    "refund": "v1_us_individual_refund.json",
    "cancel": "v1_us_individual_cancel.json",
    "return": "v1_us_individual_return.json",
    "trial": "v1_us_individual_trial.json",
}


@dataclass(frozen=True)
class RulesTable:
    """One policy's vendor table."""

    policy: str
    rules_version: str
    vendors: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def supported_vendors(self) -> list[str]:
        return sorted(self.vendors)

    def vendor_rule(self, vendor: str) -> dict[str, Any] | None:
        return self.vendors.get(vendor)


@lru_cache(maxsize=None)
def load_rules(policy: str, rules_dir: Path = RULES_DIR) -> RulesTable:
    """Load the rules table for ``policy``.

    Args:
        policy: One of the keys of RULES_FILES.
        rules_dir: Directory holding the JSON tables.

    Returns:
        The parsed RulesTable.

    Raises:
        KeyError: If the policy has no rules file.
        FileNotFoundError: If the table is missing on disk.
    """
    path = rules_dir / RULES_FILES[policy]
    with path.open(encoding="utf-8") as fh:
        raw = json.load(fh)

    return RulesTable(
        policy=policy,
        rules_version=str(raw["rules_version"]),
        vendors=dict(raw.get("vendors") or {}),
    )
