"""
Module: ledger_kernel.services.account_registry
Responsibility: Owns account identity for each entity -- creation,
    lookup by id or human-entered code, deactivation, and classification
    into statement buckets.
Architecture position: Kernel > Services.  Flush-only (BaseService).

Invariants enforced:
    - Account codes are unique within an entity.
    - Accounts are deactivated, never deleted.
    - Lookups are always scoped to an explicit entity_id; an account that
      belongs to another entity is "not found".

Failure modes:
    - DuplicateAccountCodeError on create with a code already in use.
    - AccountNotFoundError / AccountInactiveError from resolve().
"""

from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.classification import (
    ClassificationRules,
    StatementCategory,
    classify,
)
from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    DuplicateAccountCodeError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account_registry")


class AccountRegistry(BaseService[Account]):
    """
    Chart-of-accounts access for one session.

    Contract:
        create/deactivate/reactivate flush within the caller's transaction.
        resolve() returns an AccountInfo snapshot, never an ORM row.
    """

    def __init__(self, session, rules: ClassificationRules | None = None):
        super().__init__(session)
        self._rules = rules or ClassificationRules()

    def create_account(
        self,
        entity_id: UUID,
        code: str,
        name: str,
        account_type: AccountType | str,
        subtype: str | None = None,
        actor_id: UUID | None = None,
    ) -> Account:
        code = code.strip()
        if self.get_by_code(entity_id, code) is not None:
            raise DuplicateAccountCodeError(str(entity_id), code)

        account = Account(
            entity_id=entity_id,
            code=code,
            name=name,
            account_type=AccountType(account_type).value,
            subtype=subtype,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={
                "entity_id": str(entity_id),
                "account_id": str(account.id),
                "account_code": code,
                "account_type": account.account_type,
                "subtype": subtype,
            },
        )
        return account

    def get(self, entity_id: UUID, account_id: UUID) -> Account | None:
        return self.session.execute(
            select(Account).where(
                Account.entity_id == entity_id,
                Account.id == account_id,
            )
        ).scalar_one_or_none()

    def get_by_code(self, entity_id: UUID, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(
                Account.entity_id == entity_id,
                Account.code == code.strip(),
            )
        ).scalar_one_or_none()

    def list_accounts(
        self,
        entity_id: UUID,
        include_inactive: bool = False,
    ) -> list[Account]:
        """All accounts of the entity ordered by code."""
        query = select(Account).where(Account.entity_id == entity_id)
        if not include_inactive:
            query = query.where(Account.is_active.is_(True))
        return list(self.session.execute(query.order_by(Account.code)).scalars())

    def account_infos(
        self,
        entity_id: UUID,
        include_inactive: bool = True,
    ) -> dict[UUID, AccountInfo]:
        """AccountInfo snapshots keyed by id (inactive included by default)."""
        return {
            acct.id: AccountInfo.from_model(acct)
            for acct in self.list_accounts(entity_id, include_inactive=include_inactive)
        }

    def resolve(self, entity_id: UUID, reference: UUID | str) -> AccountInfo:
        """
        Resolve an account reference (UUID or human-entered code).

        Raises:
            AccountNotFoundError: No account of this entity matches.
            AccountInactiveError: The account exists but is deactivated.
        """
        if isinstance(reference, UUID):
            account = self.get(entity_id, reference)
        else:
            account = self.get_by_code(entity_id, str(reference))

        if account is None:
            raise AccountNotFoundError(str(reference))
        if not account.is_active:
            raise AccountInactiveError(str(reference))
        return AccountInfo.from_model(account)

    def deactivate(self, entity_id: UUID, account_id: UUID) -> Account:
        return self._set_active(entity_id, account_id, False)

    def reactivate(self, entity_id: UUID, account_id: UUID) -> Account:
        return self._set_active(entity_id, account_id, True)

    def _set_active(self, entity_id: UUID, account_id: UUID, active: bool) -> Account:
        account = self.get(entity_id, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        account.is_active = active
        self.session.flush()
        logger.info(
            "account_activated" if active else "account_deactivated",
            extra={"entity_id": str(entity_id), "account_code": account.code},
        )
        return account

    def classify(self, account: AccountInfo | Account) -> StatementCategory:
        if isinstance(account, Account):
            account = AccountInfo.from_model(account)
        return classify(account, self._rules)
