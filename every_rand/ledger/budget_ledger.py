"""
Zero-Based Budget Ledger

Holds the signed-in owner's line items for the current month, derives the
zero-based totals, and keeps the document store in step.

WRITE POLICY:
- Adding an item waits for the store: the item only appears once the store
  has assigned its ID.
- Editing and deleting are optimistic: memory changes at once, the store
  write runs in the background. A failed background write is logged and
  reported, but the local change is NOT rolled back.
- Background writes for the same item are chained, so they reach the store
  in the order the user made them.
- The month rollover is one atomic batch. While it runs, the ledger is busy
  and refuses edits.

OWNERSHIP: every operation checks the acting session's owner ID against
the items it touches.
"""

import asyncio
import functools
from typing import Awaitable, Callable, Optional

import structlog
from pydantic import ValidationError

from every_rand.auth.interface import SessionProviderInterface
from every_rand.ledger.rollover import compute_rollover, rollover_surplus
from every_rand.models.account import Session
from every_rand.models.budget import (
    ROLLOVER_GROUPS,
    BudgetSnapshot,
    EditableField,
    LineItem,
    LineItemDraft,
    LineItemType,
    coerce_amount,
    default_group_for,
    default_line_items,
)
from every_rand.services.storage import BatchOperation, DocumentStore, Record, StorageError


ITEMS_COLLECTION = "budgetItems"

# Model attribute behind each editable document field
_FIELD_ATTRIBUTES = {
    EditableField.PLANNED_AMOUNT: "planned_amount",
}

logger = structlog.get_logger(__name__)


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class LoadFailed(LedgerError):
    """Fetching or seeding the owner's items failed."""
    pass


class WriteFailed(LedgerError):
    """A single add, update or delete did not reach the store."""

    def __init__(self, action: str, item_id: Optional[str], cause: Exception):
        self.action = action
        self.item_id = item_id
        self.cause = cause
        target = item_id or "new item"
        super().__init__(f"Failed to {action} {target}: {cause}")


class RolloverFailed(LedgerError):
    """The month rollover batch was rejected; nothing changed."""
    pass


class OwnershipError(LedgerError):
    """The acting session does not own the item or ledger."""
    pass


class NoActiveSessionError(LedgerError):
    """Operation attempted while signed out."""
    pass


class ItemNotFoundError(LedgerError):
    """No item with that ID in the current ledger."""
    pass


class InvalidFieldError(LedgerError):
    """Field is not editable through update_field."""
    pass


class ConfirmationRequired(LedgerError):
    """Destructive or batch operation called without confirmation."""
    pass


class LedgerBusyError(LedgerError):
    """Edits are refused while the month rollover is in flight."""
    pass


WriteFailureCallback = Callable[[WriteFailed], None]


class BudgetLedger:
    """
    In-memory ledger for one signed-in owner.

    Usage:
        ledger = BudgetLedger(store, session_provider)
        await ledger.load()
        ledger.update_field(item_id, "plannedAmount", "1500")
        await ledger.apply_month_rollover(confirmed=True)
        ledger.close()
    """

    def __init__(
        self,
        store: DocumentStore,
        session_provider: SessionProviderInterface,
        collection: str = ITEMS_COLLECTION,
        rollover_groups: frozenset[str] = ROLLOVER_GROUPS,
        on_write_failed: Optional[WriteFailureCallback] = None,
    ):
        """
        Initialize the ledger and subscribe to session changes.

        Args:
            store: Document store holding the line items
            session_provider: Source of the signed-in identity
            collection: Collection name for line items
            rollover_groups: Category groups whose surplus rolls over
            on_write_failed: Called for every failed background write
        """
        self._store = store
        self._provider = session_provider
        self._collection = collection
        self._rollover_groups = frozenset(rollover_groups)
        self._on_write_failed = on_write_failed

        self._items: list[LineItem] = []
        self._owner_id: Optional[str] = None
        self._pending: dict[str, asyncio.Task] = {}
        self._adds: set[asyncio.Task] = set()
        self._write_failures: list[WriteFailed] = []
        self._rollover_in_progress = False

        self._unsubscribe = session_provider.subscribe(self._on_session_changed)

    # -------------------------------------------------------------------------
    # Session handling
    # -------------------------------------------------------------------------

    def _on_session_changed(self, session: Optional[Session]) -> None:
        if session is None or session.owner_id != self._owner_id:
            self._discard()

    def _discard(self) -> None:
        if self._owner_id is not None:
            logger.info("ledger_discarded", owner_id=self._owner_id)
        self._items = []
        self._owner_id = None
        self._write_failures = []

    def close(self) -> None:
        """Stop listening for session changes and drop all state."""
        self._unsubscribe()
        self._discard()

    def _require_session(self, owner_id: Optional[str] = None) -> Session:
        session = self._provider.current_session()
        if session is None:
            raise NoActiveSessionError("Sign in to use your budget")
        if owner_id is not None and owner_id != session.owner_id:
            logger.warning(
                "ownership_violation",
                session_owner=session.owner_id,
                requested_owner=owner_id,
            )
            raise OwnershipError("This budget belongs to another account")
        return session

    def _check_owner(self, item: LineItem, session: Session) -> None:
        if item.owner_id != session.owner_id:
            logger.warning(
                "ownership_violation",
                session_owner=session.owner_id,
                item_id=item.id,
            )
            raise OwnershipError(f"Item {item.id} belongs to another account")

    def _ensure_idle(self) -> None:
        if self._rollover_in_progress:
            raise LedgerBusyError("Starting the next month, please wait")

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    @property
    def items(self) -> list[LineItem]:
        """Items in load order (createdAt ascending)."""
        return list(self._items)

    @property
    def is_busy(self) -> bool:
        return self._rollover_in_progress

    @property
    def rollover_groups(self) -> frozenset[str]:
        return self._rollover_groups

    def items_of_type(self, item_type: LineItemType) -> list[LineItem]:
        item_type = LineItemType(item_type)
        return [item for item in self._items if item.type == item_type]

    def display_items(self) -> list[LineItem]:
        """Income first, then expenses, each in creation order."""
        return self.items_of_type(LineItemType.INCOME) + self.items_of_type(LineItemType.EXPENSE)

    def get_item(self, item_id: str) -> LineItem:
        return self._find(item_id)[1]

    def _find(self, item_id: str) -> tuple[int, LineItem]:
        for idx, item in enumerate(self._items):
            if item.id == item_id:
                return idx, item
        raise ItemNotFoundError(f"Item not found: {item_id}")

    def snapshot(self) -> BudgetSnapshot:
        """Zero-based totals, recomputed from the current items."""
        return BudgetSnapshot.from_items(self._items)

    @property
    def total_income(self):
        return self.snapshot().total_income

    @property
    def total_expenses(self):
        return self.snapshot().total_expenses

    @property
    def left_to_budget(self):
        return self.snapshot().left_to_budget

    def rollover_surplus(self, item: LineItem):
        """Amount this item would carry into next month."""
        return rollover_surplus(item, self._rollover_groups)

    def pop_write_failures(self) -> list[WriteFailed]:
        """Return and clear background write failures not yet shown."""
        failures, self._write_failures = self._write_failures, []
        return failures

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def _fetch(self, owner_id: str) -> list[Record]:
        return await self._store.query(
            self._collection,
            where={"ownerId": owner_id},
            order_by="createdAt",
        )

    async def _seed(self, owner_id: str) -> None:
        drafts = default_line_items(owner_id)
        await self._store.atomic_batch([
            BatchOperation.insert(self._collection, draft.to_document())
            for draft in drafts
        ])
        logger.info("ledger_seeded", owner_id=owner_id, item_count=len(drafts))

    def _parse(self, records: list[Record], owner_id: str) -> list[LineItem]:
        items = []
        for record in records:
            try:
                item = LineItem.from_document(record)
            except ValidationError as e:
                # Skip malformed rows rather than losing the whole budget
                logger.warning(
                    "malformed_item_skipped",
                    item_id=record.get("id"),
                    error_count=e.error_count(),
                )
                continue
            if item.owner_id == owner_id:
                items.append(item)
        return items

    async def load(self, owner_id: Optional[str] = None) -> list[LineItem]:
        """
        Load the owner's items, seeding defaults for a brand-new owner.

        Args:
            owner_id: Must match the active session (defaults to it)

        Returns:
            Items ordered by creation time

        Raises:
            LoadFailed: The store could not be read or seeded
        """
        session = self._require_session(owner_id)
        owner_id = session.owner_id

        try:
            records = await self._fetch(owner_id)
            if not records:
                await self._seed(owner_id)
                records = await self._fetch(owner_id)
        except StorageError as e:
            logger.error("load_failed", owner_id=owner_id, error=str(e))
            raise LoadFailed(f"Could not load your budget: {e}") from e

        items = self._parse(records, owner_id)

        current = self._provider.current_session()
        if current is not None and current.owner_id == owner_id:
            self._items = items
            self._owner_id = owner_id
            logger.info("ledger_loaded", owner_id=owner_id, item_count=len(items))
        return list(items)

    # -------------------------------------------------------------------------
    # Background writes
    # -------------------------------------------------------------------------

    def _schedule_write(
        self,
        action: str,
        item_id: str,
        write: Callable[[], Awaitable[object]],
    ) -> asyncio.Task:
        previous = self._pending.get(item_id)
        task = asyncio.get_running_loop().create_task(
            self._run_write(previous, action, item_id, write)
        )
        self._pending[item_id] = task
        task.add_done_callback(functools.partial(self._write_done, item_id))
        return task

    def _write_done(self, item_id: str, task: asyncio.Task) -> None:
        if self._pending.get(item_id) is task:
            del self._pending[item_id]

    async def _run_write(
        self,
        previous: Optional[asyncio.Task],
        action: str,
        item_id: str,
        write: Callable[[], Awaitable[object]],
    ) -> bool:
        if previous is not None:
            # Same-item writes reach the store in issue order
            await asyncio.wait([previous])
        try:
            await write()
        except StorageError as e:
            self._report_failure(WriteFailed(action, item_id, e))
            return False
        logger.debug("item_written", action=action, item_id=item_id)
        return True

    def _report_failure(self, failure: WriteFailed) -> None:
        logger.error(
            "write_failed",
            action=failure.action,
            item_id=failure.item_id,
            error=str(failure.cause),
        )
        self._write_failures.append(failure)
        if self._on_write_failed is not None:
            self._on_write_failed(failure)

    def _in_flight(self) -> list[asyncio.Task]:
        tasks = list(self._pending.values()) + list(self._adds)
        return [task for task in tasks if not task.done()]

    async def flush(self) -> None:
        """Wait until every background write and in-flight add has finished."""
        pending = self._in_flight()
        while pending:
            await asyncio.wait(pending)
            pending = self._in_flight()

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def add_item(
        self,
        owner_id: Optional[str],
        item_type: LineItemType,
        name: Optional[str],
        category_group: Optional[str] = None,
    ) -> Optional[LineItem]:
        """
        Create a new category with zero planned and spent amounts.

        An empty or cancelled name aborts without any change.

        Raises:
            WriteFailed: The store rejected the insert (nothing added locally)
        """
        session = self._require_session(owner_id)
        self._ensure_idle()

        name = (name or "").strip()
        if not name:
            return None

        item_type = LineItemType(item_type)
        draft = LineItemDraft(
            name=name,
            type=item_type,
            category_group=(category_group or "").strip() or default_group_for(item_type),
            owner_id=session.owner_id,
        )

        task = asyncio.get_running_loop().create_task(self._insert_item(session, draft))
        self._adds.add(task)
        task.add_done_callback(self._adds.discard)
        return await task

    async def _insert_item(self, session: Session, draft: LineItemDraft) -> LineItem:
        try:
            item_id = await self._store.insert(self._collection, draft.to_document())
        except StorageError as e:
            logger.error("add_failed", owner_id=session.owner_id, error=str(e))
            raise WriteFailed("add", None, e) from e

        item = LineItem.from_draft(draft, item_id)
        known = any(existing.id == item.id for existing in self._items)
        if self._owner_id == session.owner_id and not known:
            self._items.append(item)
        logger.info(
            "item_added",
            owner_id=session.owner_id,
            item_id=item.id,
            item_type=item.type.value,
        )
        return item

    def update_field(self, item_id: str, field: str, raw_value: object) -> LineItem:
        """
        Set an editable amount; unparseable input becomes 0.

        Memory changes immediately. The store write runs in the background
        and a failure there does not undo the change. Must be called from
        a running event loop.
        """
        session = self._require_session()
        self._ensure_idle()

        try:
            field = EditableField(field)
        except ValueError:
            raise InvalidFieldError(f"{field} cannot be edited")

        idx, item = self._find(item_id)
        self._check_owner(item, session)

        value = coerce_amount(raw_value)
        updated = item.model_copy(update={_FIELD_ATTRIBUTES[field]: value})
        self._items[idx] = updated

        fields = {field.value: str(value)}
        self._schedule_write(
            "update",
            item_id,
            lambda: self._store.update(self._collection, item_id, fields),
        )
        return updated

    def delete_item(self, item_id: str, *, confirmed: bool = False) -> LineItem:
        """
        Remove an item after the user has confirmed.

        The item leaves memory immediately and is not restored if the
        background delete fails. Must be called from a running event loop.
        """
        session = self._require_session()
        self._ensure_idle()
        if not confirmed:
            raise ConfirmationRequired("Deleting a category needs confirmation")

        idx, item = self._find(item_id)
        self._check_owner(item, session)

        del self._items[idx]
        self._schedule_write(
            "delete",
            item_id,
            lambda: self._store.delete(self._collection, item_id),
        )
        logger.info("item_deleted", owner_id=session.owner_id, item_id=item_id)
        return item

    async def apply_month_rollover(
        self,
        owner_id: Optional[str] = None,
        *,
        confirmed: bool = False,
    ) -> list[LineItem]:
        """
        Start the next month: reset actuals and roll savings surpluses forward.

        All items change in one atomic batch, then the ledger reloads.

        Raises:
            ConfirmationRequired: Not confirmed by the user
            RolloverFailed: The batch was rejected (no item changed)
            LoadFailed: The batch committed but the reload failed
        """
        session = self._require_session(owner_id)
        self._ensure_idle()
        if not confirmed:
            raise ConfirmationRequired("Starting a new month needs confirmation")

        self._rollover_in_progress = True
        try:
            await self.flush()

            for item in self._items:
                self._check_owner(item, session)

            updates = compute_rollover(self._items, self._rollover_groups)
            operations = [
                BatchOperation.update(self._collection, update.item_id, update.to_fields())
                for update in updates
            ]
            try:
                if operations:
                    await self._store.atomic_batch(operations)
            except StorageError as e:
                logger.error("rollover_failed", owner_id=session.owner_id, error=str(e))
                raise RolloverFailed(f"Could not start the new month: {e}") from e

            logger.info(
                "rollover_applied",
                owner_id=session.owner_id,
                item_count=len(operations),
            )
            return await self.load(session.owner_id)
        finally:
            self._rollover_in_progress = False
