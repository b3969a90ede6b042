"""
Seed an entity's chart of accounts from an ownership-form template.

Seeding is idempotent: codes that already exist for the entity are left
untouched, so re-running after adding accounts by hand is safe.

Periodic inventory adds a Purchases account (5002) on top of the template.
Perpetual inventory books purchases straight to Inventory and needs none.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountType
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_modules.coa.loader import CoaTemplate, TemplateAccount, load_template

logger = get_logger("modules.coa.seeding")


class InventorySystem(str, Enum):
    PERIODIC = "periodic"
    PERPETUAL = "perpetual"


INVENTORY_SYSTEMS = tuple(s.value for s in InventorySystem)

PURCHASES_ACCOUNT = TemplateAccount(
    code="5002",
    name="Purchases",
    account_type=AccountType.COGS,
    subtype="purchases",
)


@dataclass(frozen=True)
class SeedResult:
    """Outcome of seeding one entity."""

    ownership: str
    inventory_system: InventorySystem
    created: tuple[str, ...]
    skipped: tuple[str, ...]


def accounts_to_seed(
    template: CoaTemplate,
    inventory_system: InventorySystem,
) -> tuple[TemplateAccount, ...]:
    """Template accounts plus the inventory-system extras, in seeding order."""
    accounts = template.accounts
    if inventory_system == InventorySystem.PERIODIC and template.account(PURCHASES_ACCOUNT.code) is None:
        accounts = accounts + (PURCHASES_ACCOUNT,)
    return accounts


def seed(
    session: Session,
    entity_id: UUID,
    ownership: str,
    template: CoaTemplate | None = None,
    actor_id: UUID | None = None,
    inventory_system: InventorySystem | str = InventorySystem.PERPETUAL,
) -> SeedResult:
    """
    Create the template's accounts for the entity.

    The session is flushed, not committed; the caller owns the transaction.

    Raises:
        TemplateNotFoundError: unknown ownership form.
        ValueError: unknown inventory system.
    """
    inventory_system = InventorySystem(inventory_system)
    template = template or load_template(ownership)
    registry = AccountRegistry(session)

    created: list[str] = []
    skipped: list[str] = []
    for acct in accounts_to_seed(template, inventory_system):
        if registry.get_by_code(entity_id, acct.code) is not None:
            skipped.append(acct.code)
            continue
        registry.create_account(
            entity_id=entity_id,
            code=acct.code,
            name=acct.name,
            account_type=acct.account_type,
            subtype=acct.subtype,
            actor_id=actor_id,
        )
        created.append(acct.code)

    logger.info(
        "chart_of_accounts_seeded",
        extra={
            "entity_id": str(entity_id),
            "ownership": template.ownership,
            "inventory_system": inventory_system.value,
            "created_count": len(created),
            "skipped_count": len(skipped),
        },
    )
    return SeedResult(
        ownership=template.ownership,
        inventory_system=inventory_system,
        created=tuple(created),
        skipped=tuple(skipped),
    )
