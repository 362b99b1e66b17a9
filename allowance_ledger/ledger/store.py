"""
Ledger Store

The single owner of the account collection and the only writer of
derived balances.

Flow for every mutation:
1. Validate input (nothing is touched if this fails)
2. Change the transaction log or settings
3. Recompute the affected account's balances from its whole log
4. Emit a LedgerEvent to the audit log and subscribers
5. Serialize the full snapshot and hand it to a background task that
   saves it, then pushes it to peers

DESIGN DECISION: Mutations are coroutines that never await before the
change is complete. On one event loop that makes each of them atomic:
no other mutation, load or incoming snapshot can interleave with it.

Steps 4 and 5 never raise into the caller and never undo the change.
Storage and replication failures are logged and the in-memory ledger
stays authoritative until the next successful write.

Replication is last-write-wins on the whole snapshot. An incoming
snapshot replaces every account, including any local edits that have
not reached the peer yet.
"""

import asyncio
import inspect
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, Union

from allowance_ledger.audit import AuditLogger
from allowance_ledger.config import LedgerSettings, get_settings
from allowance_ledger.errors import NotFoundError
from allowance_ledger.ledger.recompute import recompute_account
from allowance_ledger.models.account import (
    Account,
    AccountSettings,
    Transaction,
    TransactionKind,
    new_id,
)
from allowance_ledger.models.events import LedgerEvent, LedgerEventBuilder
from allowance_ledger.models.snapshot import (
    SnapshotError,
    UnsupportedSchemaVersion,
    decode_snapshot,
    encode_snapshot,
)
from allowance_ledger.services.replication import ReplicationAdapter
from allowance_ledger.services.storage import PersistenceAdapter
from allowance_ledger.validation import LedgerValidator


TITHING_PAYMENT_NOTE = "Tithing payment"
SAVINGS_WITHDRAWAL_NOTE = "Savings withdrawal"

Subscriber = Callable[[LedgerEvent], Union[None, Awaitable[None]]]


class LedgerStore:
    """
    In-memory ledger of children's accounts.

    Read accessors return copies; change the ledger only through the
    mutation coroutines.
    """

    def __init__(
        self,
        persistence: Optional[PersistenceAdapter] = None,
        replication: Optional[ReplicationAdapter] = None,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        device_id: Optional[str] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._persistence = persistence
        self._replication = replication
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or LedgerValidator(self._settings)
        self._device_id = device_id or self._settings.device_id or new_id()

        self._accounts: list[Account] = []
        self._subscribers: list[Subscriber] = []

        # Background effects, and the locks that keep their writes in order
        self._tasks: set[asyncio.Task] = set()
        self._save_lock = asyncio.Lock()
        self._push_lock = asyncio.Lock()

        # Bumped on every change; lets a slow load notice it is stale
        self._generation = 0

        # Schema version of a newer stored snapshot we must not overwrite
        self._held_schema: Optional[int] = None

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def persistence(self) -> Optional[PersistenceAdapter]:
        return self._persistence

    @property
    def replication(self) -> Optional[ReplicationAdapter]:
        return self._replication

    @property
    def accounts(self) -> list[Account]:
        """All accounts in insertion order."""
        return [account.model_copy(deep=True) for account in self._accounts]

    def find_account(self, account_id: str) -> Optional[Account]:
        account = self._find(account_id)
        return account.model_copy(deep=True) if account else None

    def get_account(self, account_id: str) -> Account:
        return self._require(account_id).model_copy(deep=True)

    def sorted_accounts(self) -> list[Account]:
        """Accounts for display, youngest first."""
        return sorted(self.accounts, key=lambda account: account.age)

    def account_settings(self, account_id: str) -> AccountSettings:
        return self._require(account_id).settings

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for every LedgerEvent.

        Returns a function that removes the callback again.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # =========================================================================
    # ACCOUNT MUTATIONS
    # =========================================================================

    async def add_account(
        self,
        name: str,
        birth_year: int,
        tithing_enabled: bool = True,
        savings_enabled: bool = False,
        savings_rate: Any = 0,
    ) -> Account:
        """
        Create an account with an empty log.

        Raises:
            ValidationError: If the name is empty, the birth year is out of
                range or the savings rate is outside [0, 1]
        """
        clean_name, rate = self._validator.validate_new_account(
            name=name,
            birth_year=birth_year,
            tithing_enabled=tithing_enabled,
            savings_enabled=savings_enabled,
            savings_rate=savings_rate,
        )

        account = Account(
            name=clean_name,
            birth_year=birth_year,
            tithing_enabled=tithing_enabled,
            savings_enabled=savings_enabled,
            savings_rate=rate,
        )
        recompute_account(account)
        self._accounts.append(account)

        self._commit(LedgerEventBuilder.account_added(account))
        return account.model_copy(deep=True)

    async def remove_account(self, account_id: str) -> bool:
        """
        Delete an account and its whole transaction log.

        Unknown ids are ignored. Returns True if an account was removed.
        """
        account = self._find(account_id)
        if account is None:
            return False

        self._accounts.remove(account)
        self._commit(LedgerEventBuilder.account_removed(account))
        return True

    async def update_account_settings(
        self,
        account_id: str,
        birth_year: Optional[int] = None,
        tithing_enabled: Optional[bool] = None,
        savings_enabled: Optional[bool] = None,
        savings_rate: Any = None,
    ) -> Account:
        """
        Change any of an account's settings. None leaves a setting as it is.

        A new savings rate applies to every deposit already recorded,
        not just future ones.

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If any new value is invalid
        """
        account = self._require(account_id)
        rate = self._validator.validate_settings_update(
            birth_year=birth_year,
            tithing_enabled=tithing_enabled,
            savings_enabled=savings_enabled,
            savings_rate=savings_rate,
        )

        requested = {
            "birth_year": birth_year,
            "tithing_enabled": tithing_enabled,
            "savings_enabled": savings_enabled,
            "savings_rate": rate,
        }
        changes = {
            field: value
            for field, value in requested.items()
            if value is not None and getattr(account, field) != value
        }
        if not changes:
            return account.model_copy(deep=True)

        for field, value in changes.items():
            setattr(account, field, value)
        recompute_account(account)

        self._commit(LedgerEventBuilder.account_settings_updated(account, changes))
        return account.model_copy(deep=True)

    # =========================================================================
    # TRANSACTION MUTATIONS
    # =========================================================================

    async def record_transaction(
        self,
        account_id: str,
        kind: Any,
        amount: Any,
        note: Optional[str] = "",
    ) -> Transaction:
        """
        Append a transaction to an account's log.

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If the amount is not greater than zero
        """
        account = self._require(account_id)
        clean_kind, clean_amount, clean_note = self._validator.validate_transaction(
            kind, amount, note
        )

        transaction = Transaction(kind=clean_kind, amount=clean_amount, note=clean_note)
        account.transactions.append(transaction)
        recompute_account(account)

        self._commit(LedgerEventBuilder.transaction_recorded(account, transaction))
        return transaction

    async def edit_transaction(
        self,
        account_id: str,
        transaction_id: str,
        kind: Any,
        amount: Any,
        note: Optional[str] = "",
    ) -> Transaction:
        """
        Replace a transaction's kind, amount and note.

        The replacement keeps the original id, timestamp and position in
        the log.

        Raises:
            NotFoundError: If the account or transaction does not exist
            ValidationError: If the amount is not greater than zero
        """
        account = self._require(account_id)
        index = self._transaction_index(account, transaction_id)
        if index is None:
            raise NotFoundError("transaction", transaction_id)

        clean_kind, clean_amount, clean_note = self._validator.validate_transaction(
            kind, amount, note
        )

        previous = account.transactions[index]
        replacement = Transaction(
            id=previous.id,
            kind=clean_kind,
            amount=clean_amount,
            note=clean_note,
            timestamp=previous.timestamp,
        )
        account.transactions[index] = replacement
        recompute_account(account)

        self._commit(LedgerEventBuilder.transaction_edited(account, previous, replacement))
        return replacement

    async def delete_transaction(self, account_id: str, transaction_id: str) -> bool:
        """
        Remove a transaction from an account's log.

        Unknown ids are ignored. Returns True if a transaction was removed.
        """
        account = self._find(account_id)
        if account is None:
            return False

        index = self._transaction_index(account, transaction_id)
        if index is None:
            return False

        transaction = account.transactions.pop(index)
        recompute_account(account)

        self._commit(LedgerEventBuilder.transaction_deleted(account, transaction))
        return True

    async def settle_tithing(self, account_id: str) -> Optional[Transaction]:
        """
        Pay the whole tithing due.

        Returns the payment, or None if nothing was due.

        Raises:
            NotFoundError: If the account does not exist
        """
        return self._settle(
            account_id,
            TransactionKind.TITHING_PAYMENT,
            TITHING_PAYMENT_NOTE,
        )

    async def settle_savings(self, account_id: str) -> Optional[Transaction]:
        """
        Move the whole savings due out of the balance.

        Returns the withdrawal, or None if nothing was due.

        Raises:
            NotFoundError: If the account does not exist
        """
        return self._settle(
            account_id,
            TransactionKind.SAVINGS_WITHDRAWAL,
            SAVINGS_WITHDRAWAL_NOTE,
        )

    def _settle(
        self,
        account_id: str,
        kind: TransactionKind,
        note: str,
    ) -> Optional[Transaction]:
        account = self._require(account_id)
        if kind == TransactionKind.TITHING_PAYMENT:
            due = account.tithing_due
        else:
            due = account.savings_due

        if due <= Decimal("0"):
            return None

        transaction = Transaction(kind=kind, amount=due, note=note)
        account.transactions.append(transaction)
        recompute_account(account)

        self._commit(LedgerEventBuilder.due_settled(account, transaction))
        return transaction

    # =========================================================================
    # LOADING AND REPLICATION
    # =========================================================================

    async def load(self) -> list[Account]:
        """
        Replace the ledger with the last stored snapshot.

        Anything that goes wrong (nothing stored, unreadable storage,
        a corrupt or too-new snapshot) leaves an empty ledger. If the
        ledger changes while storage is being read, the stored snapshot
        is older than what we have and is discarded.

        A too-new snapshot is left in place: saves are held until a later
        load succeeds or a peer snapshot is applied.
        """
        generation = self._generation
        error = None
        blob = None

        if self._persistence is not None:
            try:
                blob = await self._persistence.load()
            except Exception as e:
                error = f"{type(e).__name__}: {e}"

        if self._generation != generation:
            self._emit(LedgerEventBuilder.load_superseded())
            return self.accounts

        accounts: list[Account] = []
        held_schema = None
        if blob is not None:
            try:
                accounts = decode_snapshot(blob).children
            except UnsupportedSchemaVersion as e:
                held_schema = e.version
                error = f"{type(e).__name__}: {e}"
            except SnapshotError as e:
                error = f"{type(e).__name__}: {e}"

        if error is not None:
            self._emit(LedgerEventBuilder.load_failed(error))

        for account in accounts:
            recompute_account(account)
        self._accounts = accounts
        self._held_schema = held_schema
        self._generation += 1

        self._emit(LedgerEventBuilder.ledger_loaded(len(accounts)))
        return self.accounts

    async def apply_snapshot(self, blob: bytes) -> bool:
        """
        Replace the whole ledger with a snapshot received from a peer.

        The snapshot is saved locally but not pushed on again.
        Returns True if the snapshot was applied.
        """
        try:
            snapshot = decode_snapshot(blob)
        except SnapshotError as e:
            self._emit(LedgerEventBuilder.snapshot_rejected(f"{type(e).__name__}: {e}"))
            return False

        if snapshot.origin is not None and snapshot.origin == self._device_id:
            self._emit(LedgerEventBuilder.snapshot_ignored(snapshot.origin))
            return False

        for account in snapshot.children:
            recompute_account(account)
        self._accounts = snapshot.children
        self._held_schema = None

        self._commit(
            LedgerEventBuilder.snapshot_applied(snapshot.origin, len(snapshot.children)),
            push=False,
        )
        return True

    async def start(self) -> list[Account]:
        """Start receiving peer snapshots, then load the stored ledger."""
        if self._replication is not None:
            self._replication.set_receiver(self.apply_snapshot)
        return await self.load()

    async def flush(self) -> None:
        """Wait for every pending save and push to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        """Finish pending writes and release the adapters."""
        await self.flush()
        if self._replication is not None:
            self._replication.set_receiver(None)
            await self._replication.close()
        if self._persistence is not None:
            await self._persistence.close()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _find(self, account_id: str) -> Optional[Account]:
        for account in self._accounts:
            if account.id == account_id:
                return account
        return None

    def _require(self, account_id: str) -> Account:
        account = self._find(account_id)
        if account is None:
            raise NotFoundError("account", account_id)
        return account

    @staticmethod
    def _transaction_index(account: Account, transaction_id: str) -> Optional[int]:
        for index, transaction in enumerate(account.transactions):
            if transaction.id == transaction_id:
                return index
        return None

    def _emit(self, event: LedgerEvent) -> None:
        """Log an event and hand it to every subscriber."""
        self._audit_logger.log(event)
        for callback in list(self._subscribers):
            try:
                result = callback(event)
            except Exception as e:
                # A broken subscriber must not affect the ledger or its peers
                self._subscriber_failed(event, e)
                continue

            if inspect.isawaitable(result):
                self._track(self._await_subscriber(event, result))

    async def _await_subscriber(self, event: LedgerEvent, result: Awaitable[None]) -> None:
        try:
            await result
        except Exception as e:
            self._subscriber_failed(event, e)

    def _subscriber_failed(self, event: LedgerEvent, error: Exception) -> None:
        self._audit_logger.log(
            LedgerEventBuilder.subscriber_failed(event, f"{type(error).__name__}: {error}")
        )

    def _track(self, coro: Awaitable[None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _commit(self, event: LedgerEvent, push: bool = True) -> None:
        """Announce a completed change and schedule its save and push."""
        self._generation += 1
        self._emit(event)

        save = self._persistence is not None
        if save and self._held_schema is not None:
            self._emit(LedgerEventBuilder.persist_held(self._held_schema))
            save = False
        push = push and self._replication is not None
        if not save and not push:
            return

        try:
            blob = encode_snapshot(self._accounts, origin=self._device_id)
        except SnapshotError as e:
            self._emit(LedgerEventBuilder.persist_failed(str(e)))
            return

        self._track(self._sync(blob, save, push))

    async def _sync(self, blob: bytes, save: bool, push: bool) -> None:
        if save:
            async with self._save_lock:
                try:
                    await self._persistence.save(blob)
                except Exception as e:
                    self._emit(LedgerEventBuilder.persist_failed(f"{type(e).__name__}: {e}"))
                else:
                    self._emit(LedgerEventBuilder.snapshot_persisted(len(blob)))

        if push:
            async with self._push_lock:
                try:
                    await self._replication.push(blob)
                except Exception as e:
                    self._emit(LedgerEventBuilder.push_failed(f"{type(e).__name__}: {e}"))
                else:
                    self._emit(LedgerEventBuilder.snapshot_pushed(len(blob)))
