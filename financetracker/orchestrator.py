"""
Main Orchestrator for Finance Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Accounts (register → hash → store; login → verify → issue token)
2. Ledger (record transactions, set budgets, report budget progress)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every ledger method takes the verified Identity as its first argument
  and it is the only owner ever written or read
- Login failures look the same whether or not the user exists
- Every step is audited
"""

import asyncio
from datetime import date
from typing import NamedTuple, Optional
from uuid import UUID

from financetracker.audit import AuditLogger, create_correlation_id
from financetracker.auth import CredentialVault, IdentityGate, TokenService
from financetracker.clock import Clock, utc_now
from financetracker.config import get_settings
from financetracker.config.settings import AuthSettings
from financetracker.ledger import LedgerAggregator
from financetracker.models.auth import Identity, LoginResponse
from financetracker.models.ledger import (
    Budget,
    BudgetProgress,
    BudgetUpsert,
    NewTransaction,
    Transaction,
    first_of_month,
)
from financetracker.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    DataIntegrityError,
    DuplicateError,
    SqlStorage,
    TransactionStorageInterface,
    UserStorageInterface,
)


INVALID_CREDENTIALS_MESSAGE = "Invalid username/email or password"


class CredentialMismatch(Exception):
    """Login failed. Deliberately says nothing about which part was wrong."""
    pass


class AccountFlow:
    """
    Orchestrates registration and login.

    Hashing and verification are CPU-bound, so they run in a worker
    thread and the event loop keeps serving other requests.
    """

    def __init__(
        self,
        user_storage: UserStorageInterface,
        token_service: TokenService,
        vault: Optional[CredentialVault] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._users = user_storage
        self._tokens = token_service
        self._vault = vault or CredentialVault()
        self._audit_logger = audit_logger

    @property
    def vault(self) -> CredentialVault:
        return self._vault

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        correlation_id: Optional[UUID] = None,
    ) -> Identity:
        """
        Create a user and return its new identity.

        Raises:
            DuplicateError: Username or email already registered
            HashingFailure: The hashing algorithm failed
        """
        correlation_id = correlation_id or create_correlation_id()
        username = username.strip()
        email = email.strip().lower()

        password_hash = await asyncio.to_thread(self._vault.hash, password)

        try:
            user_id = await self._users.insert_credential(username, email, password_hash)
        except DuplicateError as e:
            if self._audit_logger:
                await self._audit_logger.log_registration_rejected(
                    username=username,
                    reason=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_user_registered(
                user_id=user_id,
                username=username,
                correlation_id=correlation_id,
            )
        return user_id

    async def login(
        self,
        identifier: str,
        password: str,
        correlation_id: Optional[UUID] = None,
    ) -> LoginResponse:
        """
        Check credentials and issue an access token.

        Raises:
            CredentialMismatch: Unknown identifier or wrong password
        """
        correlation_id = correlation_id or create_correlation_id()
        lookup = identifier.strip()

        # Usernames are case-sensitive, emails are stored lowercased
        credential = await self._users.find_credential_by(lookup, email=lookup.lower())

        if credential is None:
            # Same cost as a real mismatch
            matched = await asyncio.to_thread(self._vault.dummy_verify, password)
        else:
            matched = await asyncio.to_thread(
                self._vault.verify, password, credential.password_hash
            )

        if not matched:
            if self._audit_logger:
                await self._audit_logger.log_login_failed(
                    identifier=lookup,
                    correlation_id=correlation_id,
                )
            raise CredentialMismatch(INVALID_CREDENTIALS_MESSAGE)

        claims = self._tokens.build_claims(credential.user_id)
        token = self._tokens.sign(claims)
        expires_at = claims.exp

        if self._audit_logger:
            await self._audit_logger.log_login_succeeded(
                user_id=credential.user_id,
                expires_at=expires_at,
                correlation_id=correlation_id,
            )

        return LoginResponse(
            user_id=credential.user_id,
            access_token=token,
            expires_at=expires_at,
        )


class LedgerFlow:
    """
    Orchestrates transaction and budget operations for one verified identity.

    ``user_id`` fields on request bodies are never used here; the
    identity argument is the owner of everything written or read.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        budget_storage: BudgetStorageInterface,
        aggregator: Optional[LedgerAggregator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = utc_now,
    ):
        self._transactions = transaction_storage
        self._budgets = budget_storage
        self._aggregator = aggregator or LedgerAggregator(
            budget_storage, transaction_storage, clock=clock
        )
        self._audit_logger = audit_logger

    async def _report_integrity_failure(
        self,
        error: DataIntegrityError,
        identity: Identity,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_data_integrity_failure(
                error_message=str(error),
                user_id=identity,
                details={"field": error.field, "value": repr(error.value)},
                correlation_id=correlation_id,
            )

    async def add_transaction(
        self,
        identity: Identity,
        request: NewTransaction,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        correlation_id = correlation_id or create_correlation_id()

        transaction = await self._transactions.insert_transaction(
            identity,
            request.amount,
            request.kind,
            request.category,
            request.date,
            request.description,
        )

        if self._audit_logger:
            await self._audit_logger.log_transaction_added(
                user_id=identity,
                transaction_id=transaction.id,
                kind=transaction.kind.value,
                amount=str(transaction.amount),
                correlation_id=correlation_id,
            )
        return transaction

    async def list_transactions(
        self,
        identity: Identity,
        correlation_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """
        All of the identity's transactions, newest first.

        Raises:
            DataIntegrityError: A stored row is corrupt (audited, then re-raised)
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            return await self._transactions.list_transactions(identity)
        except DataIntegrityError as e:
            await self._report_integrity_failure(e, identity, correlation_id)
            raise

    async def upsert_budget(
        self,
        identity: Identity,
        request: BudgetUpsert,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        correlation_id = correlation_id or create_correlation_id()

        budget = await self._budgets.upsert_budget(
            identity,
            first_of_month(request.month),
            request.category,
            request.amount,
        )

        if self._audit_logger:
            await self._audit_logger.log_budget_upserted(
                user_id=identity,
                month=budget.month,
                category=budget.category,
                amount=str(budget.amount),
                correlation_id=correlation_id,
            )
        return budget

    async def list_budgets(
        self,
        identity: Identity,
        month: Optional[date] = None,
    ) -> list[Budget]:
        if month is not None:
            month = first_of_month(month)
        return await self._budgets.list_budgets(identity, month)

    async def budget_progress(
        self,
        identity: Identity,
        month: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[BudgetProgress]:
        """
        Budget versus spend for ``month`` (default: current UTC month).

        Raises:
            DataIntegrityError: A stored row is corrupt (audited, then re-raised)
        """
        correlation_id = correlation_id or create_correlation_id()
        resolved = self._aggregator.resolve_month(month)

        try:
            progress = await self._aggregator.compute(identity, resolved)
        except DataIntegrityError as e:
            await self._report_integrity_failure(e, identity, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_budget_progress_computed(
                user_id=identity,
                month=resolved,
                category_count=len(progress),
                correlation_id=correlation_id,
            )
        return progress


class AppComponents(NamedTuple):
    account_flow: AccountFlow
    ledger_flow: LedgerFlow
    identity_gate: IdentityGate
    audit_logger: AuditLogger
    storage: object


def create_app_components(
    auth_settings: Optional[AuthSettings] = None,
    storage: Optional[object] = None,
    clock: Clock = utc_now,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        auth_settings: Token settings; loaded from the environment if None.
        storage: An object implementing the user, transaction, budget and
                 audit interfaces. Defaults to SqlStorage from settings.
        clock: Time source shared by token expiry and month defaults.

    Returns:
        AppComponents(account_flow, ledger_flow, identity_gate, audit_logger, storage)
    """
    auth_settings = auth_settings or get_settings().auth
    if storage is None:
        storage = SqlStorage.from_settings(get_settings().database)

    token_service = TokenService(
        secret=auth_settings.secret,
        expiration_hours=auth_settings.expiration_hours,
        clock=clock,
        algorithm=auth_settings.algorithm,
    )
    audit_logger = AuditLogger(
        storage if isinstance(storage, AuditStorageInterface) else None
    )

    vault = CredentialVault()
    vault.warm_up()

    account_flow = AccountFlow(
        user_storage=storage,
        token_service=token_service,
        vault=vault,
        audit_logger=audit_logger,
    )
    ledger_flow = LedgerFlow(
        transaction_storage=storage,
        budget_storage=storage,
        aggregator=LedgerAggregator(storage, storage, clock=clock),
        audit_logger=audit_logger,
        clock=clock,
    )

    return AppComponents(
        account_flow=account_flow,
        ledger_flow=ledger_flow,
        identity_gate=IdentityGate(token_service),
        audit_logger=audit_logger,
        storage=storage,
    )
