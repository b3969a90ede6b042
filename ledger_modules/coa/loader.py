"""
Chart-of-accounts template loader (``ledger_modules.coa.loader``).

Responsibility
--------------
Loads the YAML ownership-form templates shipped in ``templates/`` and
parses them into frozen ``CoaTemplate`` instances.  A template either
lists its accounts directly or ``extends`` another template and
``overrides`` individual accounts by code.

Failure modes
-------------
* Unknown ownership form  -> ``TemplateNotFoundError``.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown account type  -> ``ValueError`` from ``AccountType``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ledger_kernel.exceptions import TemplateNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountType

logger = get_logger("modules.coa.loader")

TEMPLATES_DIR = Path(__file__).parent / "templates"

OWNERSHIP_FORMS: tuple[str, ...] = (
    "sole",
    "partnership",
    "llc",
    "corp",
    "pty_ltd",
    "soe",
    "other",
)


@dataclass(frozen=True)
class TemplateAccount:
    """One account in a chart-of-accounts template."""

    code: str
    name: str
    account_type: AccountType
    subtype: str | None = None


@dataclass(frozen=True)
class CoaTemplate:
    """Initial account set for an ownership form."""

    ownership: str
    name: str
    accounts: tuple[TemplateAccount, ...]

    def account(self, code: str) -> TemplateAccount | None:
        for acct in self.accounts:
            if acct.code == code:
                return acct
        return None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    return data or {}


def _parse_account(data: dict[str, Any]) -> TemplateAccount:
    return TemplateAccount(
        code=str(data["code"]),
        name=data["name"],
        account_type=AccountType(data["type"]),
        subtype=data.get("subtype"),
    )


def _load_accounts(template_name: str, templates_dir: Path, seen: tuple[str, ...] = ()) -> list[dict]:
    if template_name in seen:
        raise ValueError(f"Template inheritance cycle: {' -> '.join(seen + (template_name,))}")

    path = templates_dir / f"{template_name}.yaml"
    if not path.exists():
        raise TemplateNotFoundError(template_name)
    data = load_yaml_file(path)

    if "extends" in data:
        accounts = _load_accounts(data["extends"], templates_dir, seen + (template_name,))
    else:
        accounts = []
    accounts = [dict(a) for a in accounts] + [dict(a) for a in data.get("accounts", [])]

    overrides = {str(k): v for k, v in (data.get("overrides") or {}).items()}
    for acct in accounts:
        acct.update(overrides.get(str(acct["code"]), {}))
    return accounts


def load_template(ownership: str, templates_dir: Path | None = None) -> CoaTemplate:
    """
    Load the template for an ownership form.

    Raises:
        TemplateNotFoundError: no template file for the ownership form.
    """
    templates_dir = templates_dir or TEMPLATES_DIR
    key = ownership.strip().lower()
    path = templates_dir / f"{key}.yaml"
    if not key or not path.exists():
        raise TemplateNotFoundError(ownership)

    data = load_yaml_file(path)
    accounts = tuple(_parse_account(a) for a in _load_accounts(key, templates_dir))

    template = CoaTemplate(
        ownership=data.get("ownership", key),
        name=data.get("name", key),
        accounts=tuple(sorted(accounts, key=lambda a: a.code)),
    )
    logger.debug(
        "coa_template_loaded",
        extra={"ownership": template.ownership, "account_count": len(template.accounts)},
    )
    return template


def compute_checksum(template: CoaTemplate) -> str:
    """Deterministic SHA-256 of a template's account set."""
    payload = [
        {
            "code": a.code,
            "name": a.name,
            "type": a.account_type.value,
            "subtype": a.subtype,
        }
        for a in template.accounts
    ]
    canonical = json.dumps(
        {"ownership": template.ownership, "accounts": payload},
        sort_keys=True,
    )
    return hashlib.sha256(canonical.encode()).hexdigest()
