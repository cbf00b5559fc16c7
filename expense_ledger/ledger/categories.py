"""
Category Store

Categories are per-user labels. Names are unique per user, compared
case-insensitively. Deleting a category detaches its expenses (they
become uncategorized) and drops the budgets scoped to it.
"""

from typing import Optional

from expense_ledger.exceptions import (
    DuplicateCategoryError,
    InvalidInputError,
    RecordNotFoundError,
)
from expense_ledger.ledger.users import require_user
from expense_ledger.models.ledger import Category
from expense_ledger.services.storage import DuplicateError, LedgerStorageInterface
from expense_ledger.validation import RequestValidator


async def check_category_owner(
    storage: LedgerStorageInterface,
    user_id: int,
    category_id: Optional[int],
) -> None:
    """
    Reject a category id the user doesn't own.

    Used by expense and budget writes, where an unknown category is bad
    input rather than a missing record.
    """
    if category_id is None:
        return
    category = await storage.get_category(category_id)
    if category is None or category.user_id != user_id:
        raise InvalidInputError(
            f"Unknown category: {category_id}",
            details={"category_id": category_id},
        )


class CategoryStore:
    """Create, list and delete categories."""

    def __init__(self, storage: LedgerStorageInterface, validator: RequestValidator):
        self._storage = storage
        self._validator = validator

    async def create(
        self,
        user_id: int,
        name: str,
        color: Optional[str] = None,
    ) -> Category:
        """
        Raises:
            DuplicateCategoryError: If the user already has this name
        """
        category = self._validator.parse(Category, user_id=user_id, name=name, color=color)
        await require_user(self._storage, user_id)
        try:
            return await self._storage.insert_category(category)
        except DuplicateError:
            raise DuplicateCategoryError(
                f"Category already exists: {category.name}",
                details={"name": category.name},
            )

    async def get(self, user_id: int, category_id: int) -> Category:
        category = await self._storage.get_category(category_id)
        if category is None or category.user_id != user_id:
            raise RecordNotFoundError("category", category_id)
        return category

    async def list_for_user(self, user_id: int) -> list[Category]:
        await require_user(self._storage, user_id)
        return await self._storage.list_categories(user_id)

    async def delete(self, user_id: int, category_id: int) -> Category:
        """Delete a category and return what was deleted."""
        category = await self.get(user_id, category_id)
        if not await self._storage.delete_category(category_id):
            raise RecordNotFoundError("category", category_id)
        return category
