"""Chart-of-accounts templates per ownership form, and entity seeding."""

from ledger_modules.coa.loader import (
    OWNERSHIP_FORMS,
    CoaTemplate,
    TemplateAccount,
    compute_checksum,
    load_template,
)
from ledger_modules.coa.seeding import (
    INVENTORY_SYSTEMS,
    PURCHASES_ACCOUNT,
    InventorySystem,
    SeedResult,
    accounts_to_seed,
    seed,
)

__all__ = [
    "INVENTORY_SYSTEMS",
    "OWNERSHIP_FORMS",
    "PURCHASES_ACCOUNT",
    "CoaTemplate",
    "InventorySystem",
    "SeedResult",
    "TemplateAccount",
    "accounts_to_seed",
    "compute_checksum",
    "load_template",
    "seed",
]
