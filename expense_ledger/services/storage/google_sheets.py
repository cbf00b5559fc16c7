"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a storage backend because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: writes are serialized with a process-wide lock, so
  uniqueness holds only while a single process owns the spreadsheet
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing business logic.
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional, TypeVar
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    Retrying,
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from expense_ledger.config import get_settings
from expense_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from expense_ledger.models.ledger import (
    Budget,
    Category,
    CurrencySet,
    CurrencyUnset,
    Expense,
    User,
)
from expense_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)


USER_COLUMNS = [
    "id",
    "email",
    "full_name",
    "password_hash",
    "base_currency",
    "created_at",
]

CATEGORY_COLUMNS = [
    "id",
    "user_id",
    "name",
    "color",
    "created_at",
]

EXPENSE_COLUMNS = [
    "id",
    "user_id",
    "amount_base",
    "original_amount",
    "original_currency",
    "expense_date",
    "description",
    "recurring",
    "category_id",
    "created_at",
    "updated_at",
]

BUDGET_COLUMNS = [
    "id",
    "user_id",
    "year",
    "month",
    "category_id",
    "limit_amount",
    "created_at",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "user_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
]

# table -> (GoogleSheetsSettings attribute naming its worksheet, header)
_TABLES = {
    "user": ("users_sheet_name", USER_COLUMNS),
    "category": ("categories_sheet_name", CATEGORY_COLUMNS),
    "expense": ("expenses_sheet_name", EXPENSE_COLUMNS),
    "budget": ("budgets_sheet_name", BUDGET_COLUMNS),
}

T = TypeVar("T")


def _retrying(wait: Optional[wait_base] = None) -> Retrying:
    """Retry policy for one Sheets API call. Storage errors are final."""
    return Retrying(
        stop=stop_after_attempt(3),
        wait=wait or wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(StorageError),
        reraise=True,
    )


def _append_once(
    get_sheet: Callable[[], gspread.Worksheet],
    row: list,
    landed: Callable[[list], bool],
    wait: Optional[wait_base] = None,
) -> None:
    """
    Append a row so that it ends up in the sheet exactly once.

    A failed append_row may still have reached the sheet, so before every
    retry the sheet is re-read and the append skipped if `landed` matches
    an existing row.
    """
    for attempt in _retrying(wait):
        with attempt:
            sheet = get_sheet()
            if attempt.retry_state.attempt_number > 1 and any(
                landed(existing) for existing in sheet.get_all_values()[1:]
            ):
                return
            sheet.append_row(row, value_input_option="RAW")


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _optional_int(value: str) -> Optional[int]:
    return int(value) if value else None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @property
    def settings(self):
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    One worksheet per table, one record per row, header in row 1.
    Ids are allocated as max(id) + 1 while holding the write lock.

    Retries wrap single API calls, never a whole check-then-write, so a
    retried write can't trip over its own earlier attempt.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()
        self._retry_wait = retry_wait

    # -------------------------------------------------------------------------
    # Sheet helpers
    # -------------------------------------------------------------------------

    def _sheet(self, table: str) -> gspread.Worksheet:
        attribute, columns = _TABLES[table]
        title = getattr(self._client.settings, attribute)
        return self._client.get_worksheet(title, columns)

    def _call(self, fn: Callable[[], T]) -> T:
        return _retrying(self._retry_wait)(fn)

    def _load(self, table: str, parse: Callable[[list], T]) -> list[tuple[int, T]]:
        """Return (sheet row number, record) for every non-empty row."""
        try:
            all_rows = self._call(lambda: self._sheet(table).get_all_values())
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {table} sheet: {e}")

        records = []
        for row_number, row in enumerate(all_rows[1:], start=2):
            if not row or not row[0]:
                continue
            records.append((row_number, parse(row)))
        return records

    def _next_id(self, records: list[tuple[int, object]]) -> int:
        return max((record.id for _, record in records), default=0) + 1

    def _append(self, table: str, row: list) -> None:
        # id and created_at together identify the pending record
        created_at = _TABLES[table][1].index("created_at")

        def landed(existing: list) -> bool:
            return (
                _cell(existing, 0) == row[0]
                and _cell(existing, created_at) == row[created_at]
            )

        try:
            _append_once(lambda: self._sheet(table), row, landed, self._retry_wait)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to append {table}: {e}")

    def _replace(self, table: str, row_number: int, row: list) -> None:
        try:
            self._call(
                lambda: self._sheet(table).update(range_name=f"A{row_number}", values=[row])
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {table}: {e}")

    def _delete_rows(self, table: str, row_numbers: list[int]) -> None:
        # Not retried: repeating delete_rows would remove the next record
        sheet = self._sheet(table)
        try:
            # Bottom-up so earlier row numbers stay valid
            for row_number in sorted(row_numbers, reverse=True):
                sheet.delete_rows(row_number)
        except Exception as e:
            raise StorageError(f"Failed to delete {table} rows: {e}")

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    def _user_to_row(self, user: User) -> list:
        base = user.base_currency.code if user.base_currency.is_set else ""
        return [
            str(user.id),
            user.email,
            user.full_name,
            user.password_hash,
            base,
            user.created_at.isoformat(),
        ]

    def _row_to_user(self, row: list) -> User:
        base = _cell(row, 4)
        return User(
            id=int(_cell(row, 0)),
            email=_cell(row, 1),
            full_name=_cell(row, 2),
            password_hash=_cell(row, 3),
            base_currency=CurrencySet(code=base) if base else CurrencyUnset(),
            created_at=datetime.fromisoformat(_cell(row, 5)),
        )

    def _category_to_row(self, category: Category) -> list:
        return [
            str(category.id),
            str(category.user_id),
            category.name,
            category.color or "",
            category.created_at.isoformat(),
        ]

    def _row_to_category(self, row: list) -> Category:
        return Category(
            id=int(_cell(row, 0)),
            user_id=int(_cell(row, 1)),
            name=_cell(row, 2),
            color=_cell(row, 3) or None,
            created_at=datetime.fromisoformat(_cell(row, 4)),
        )

    def _expense_to_row(self, expense: Expense) -> list:
        return [
            str(expense.id),
            str(expense.user_id),
            str(expense.amount_base),
            str(expense.original_amount) if expense.original_amount is not None else "",
            expense.original_currency or "",
            expense.expense_date.isoformat(),
            expense.description or "",
            str(expense.recurring),
            str(expense.category_id) if expense.category_id is not None else "",
            expense.created_at.isoformat(),
            expense.updated_at.isoformat(),
        ]

    def _row_to_expense(self, row: list) -> Expense:
        return Expense(
            id=int(_cell(row, 0)),
            user_id=int(_cell(row, 1)),
            amount_base=Decimal(_cell(row, 2)),
            original_amount=Decimal(_cell(row, 3)) if _cell(row, 3) else None,
            original_currency=_cell(row, 4) or None,
            expense_date=date.fromisoformat(_cell(row, 5)),
            description=_cell(row, 6) or None,
            recurring=_cell(row, 7).lower() == "true",
            category_id=_optional_int(_cell(row, 8)),
            created_at=datetime.fromisoformat(_cell(row, 9)),
            updated_at=datetime.fromisoformat(_cell(row, 10)),
        )

    def _budget_to_row(self, budget: Budget) -> list:
        return [
            str(budget.id),
            str(budget.user_id),
            str(budget.year),
            str(budget.month),
            str(budget.category_id) if budget.category_id is not None else "",
            str(budget.limit_amount),
            budget.created_at.isoformat(),
            budget.updated_at.isoformat(),
        ]

    def _row_to_budget(self, row: list) -> Budget:
        return Budget(
            id=int(_cell(row, 0)),
            user_id=int(_cell(row, 1)),
            year=int(_cell(row, 2)),
            month=int(_cell(row, 3)),
            category_id=_optional_int(_cell(row, 4)),
            limit_amount=Decimal(_cell(row, 5)),
            created_at=datetime.fromisoformat(_cell(row, 6)),
            updated_at=datetime.fromisoformat(_cell(row, 7)),
        )

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def insert_user(self, user: User) -> User:
        async with self._lock:
            records = self._load("user", self._row_to_user)
            if any(existing.email == user.email for _, existing in records):
                raise DuplicateError(f"Email already registered: {user.email}")
            stored = user.model_copy(update={"id": self._next_id(records)})
            self._append("user", self._user_to_row(stored))
            return stored

    async def get_user(self, user_id: int) -> Optional[User]:
        for _, user in self._load("user", self._row_to_user):
            if user.id == user_id:
                return user
        return None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        for _, user in self._load("user", self._row_to_user):
            if user.email == email:
                return user
        return None

    async def set_base_currency_if_unset(self, user_id: int, code: str) -> User:
        async with self._lock:
            for row_number, user in self._load("user", self._row_to_user):
                if user.id != user_id:
                    continue
                if user.base_currency.is_set:
                    return user
                user = user.model_copy(update={"base_currency": CurrencySet(code=code)})
                self._replace("user", row_number, self._user_to_row(user))
                return user
            raise NotFoundError(f"User not found: {user_id}")

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def insert_category(self, category: Category) -> Category:
        async with self._lock:
            records = self._load("category", self._row_to_category)
            for _, existing in records:
                if (
                    existing.user_id == category.user_id
                    and existing.name_key == category.name_key
                ):
                    raise DuplicateError(f"Category already exists: {category.name}")
            stored = category.model_copy(update={"id": self._next_id(records)})
            self._append("category", self._category_to_row(stored))
            return stored

    async def get_category(self, category_id: int) -> Optional[Category]:
        for _, category in self._load("category", self._row_to_category):
            if category.id == category_id:
                return category
        return None

    async def list_categories(self, user_id: int) -> list[Category]:
        categories = [
            c for _, c in self._load("category", self._row_to_category)
            if c.user_id == user_id
        ]
        categories.sort(key=lambda c: (c.name_key, c.id))
        return categories

    async def delete_category(self, category_id: int) -> bool:
        async with self._lock:
            rows = [
                row_number
                for row_number, c in self._load("category", self._row_to_category)
                if c.id == category_id
            ]
            if not rows:
                return False

            now = datetime.utcnow()
            for row_number, expense in self._load("expense", self._row_to_expense):
                if expense.category_id == category_id:
                    detached = expense.model_copy(
                        update={"category_id": None, "updated_at": now}
                    )
                    self._replace("expense", row_number, self._expense_to_row(detached))

            budget_rows = [
                row_number
                for row_number, budget in self._load("budget", self._row_to_budget)
                if budget.category_id == category_id
            ]
            self._delete_rows("budget", budget_rows)
            self._delete_rows("category", rows)
            return True

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def insert_expense(self, expense: Expense) -> Expense:
        async with self._lock:
            records = self._load("expense", self._row_to_expense)
            stored = expense.model_copy(update={"id": self._next_id(records)})
            self._append("expense", self._expense_to_row(stored))
            return stored

    async def get_expense(self, expense_id: int) -> Optional[Expense]:
        for _, expense in self._load("expense", self._row_to_expense):
            if expense.id == expense_id:
                return expense
        return None

    async def update_expense(self, expense: Expense) -> Expense:
        async with self._lock:
            for row_number, existing in self._load("expense", self._row_to_expense):
                if existing.id == expense.id:
                    stored = expense.model_copy(update={"updated_at": datetime.utcnow()})
                    self._replace("expense", row_number, self._expense_to_row(stored))
                    return stored
            raise NotFoundError(f"Expense not found: {expense.id}")

    async def delete_expense(self, expense_id: int) -> bool:
        async with self._lock:
            rows = [
                row_number
                for row_number, e in self._load("expense", self._row_to_expense)
                if e.id == expense_id
            ]
            self._delete_rows("expense", rows)
            return bool(rows)

    async def list_expenses(
        self,
        user_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category_id: Optional[int] = None,
    ) -> list[Expense]:
        expenses = []
        for _, expense in self._load("expense", self._row_to_expense):
            if expense.user_id != user_id:
                continue
            if date_from and expense.expense_date < date_from:
                continue
            if date_to and expense.expense_date > date_to:
                continue
            if category_id is not None and expense.category_id != category_id:
                continue
            expenses.append(expense)

        # Sort by date descending (newest first)
        expenses.sort(key=lambda e: (e.expense_date, e.id), reverse=True)
        return expenses

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def insert_budget(self, budget: Budget) -> Budget:
        async with self._lock:
            records = self._load("budget", self._row_to_budget)
            if any(b.period_key == budget.period_key for _, b in records):
                raise DuplicateError(f"Budget already exists for {budget.period_key}")
            stored = budget.model_copy(update={"id": self._next_id(records)})
            self._append("budget", self._budget_to_row(stored))
            return stored

    async def get_budget(self, budget_id: int) -> Optional[Budget]:
        for _, budget in self._load("budget", self._row_to_budget):
            if budget.id == budget_id:
                return budget
        return None

    async def update_budget(self, budget: Budget) -> Budget:
        async with self._lock:
            records = self._load("budget", self._row_to_budget)
            if any(
                b.period_key == budget.period_key and b.id != budget.id
                for _, b in records
            ):
                raise DuplicateError(f"Budget already exists for {budget.period_key}")
            for row_number, existing in records:
                if existing.id == budget.id:
                    stored = budget.model_copy(update={"updated_at": datetime.utcnow()})
                    self._replace("budget", row_number, self._budget_to_row(stored))
                    return stored
            raise NotFoundError(f"Budget not found: {budget.id}")

    async def delete_budget(self, budget_id: int) -> bool:
        async with self._lock:
            rows = [
                row_number
                for row_number, b in self._load("budget", self._row_to_budget)
                if b.id == budget_id
            ]
            self._delete_rows("budget", rows)
            return bool(rows)

    async def list_budgets(
        self,
        user_id: int,
        year: int,
        month: int,
    ) -> list[Budget]:
        budgets = [
            b for _, b in self._load("budget", self._row_to_budget)
            if b.user_id == user_id and b.year == year and b.month == month
        ]
        budgets.sort(key=lambda b: b.id)
        return budgets


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._retry_wait = retry_wait
        self._logger = structlog.get_logger(__name__)

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(
            self._client.settings.audit_sheet_name, AUDIT_COLUMNS
        )

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=_optional_int(_cell(row, 5)),
            user_id=_optional_int(_cell(row, 6)),
            correlation_id=UUID(_cell(row, 7)) if _cell(row, 7) else None,
            description=_cell(row, 8),
            details=json.loads(_cell(row, 9)) if _cell(row, 9) else {},
            error_code=_cell(row, 10) or None,
            error_message=_cell(row, 11) or None,
        )

    def _read_events(self) -> list[AuditEvent]:
        try:
            all_rows = self._sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, json.JSONDecodeError) as e:
                self._logger.warning("audit_row_unreadable", error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event, at most once per event_id."""
        row = event.to_sheets_row()
        try:
            _append_once(
                self._sheet,
                row,
                lambda existing: _cell(existing, 0) == str(row[0]),
                self._retry_wait,
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to append audit event: {e}")
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
