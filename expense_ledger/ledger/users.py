"""
User Directory

Registration and lookup of ledger owners. Password hashing and
authentication belong to the caller; the hash is stored opaquely.
"""

from expense_ledger.exceptions import EmailTakenError, RecordNotFoundError
from expense_ledger.models.ledger import User
from expense_ledger.services.storage import DuplicateError, LedgerStorageInterface
from expense_ledger.validation import RequestValidator


async def require_user(storage: LedgerStorageInterface, user_id: int) -> User:
    """Load a user or raise RecordNotFoundError."""
    user = await storage.get_user(user_id)
    if user is None:
        raise RecordNotFoundError("user", user_id)
    return user


def _email_taken(email: str) -> EmailTakenError:
    return EmailTakenError(
        f"An account already exists for {email}",
        details={"email": email},
    )


class UserDirectory:
    """Creates and looks up users."""

    def __init__(self, storage: LedgerStorageInterface, validator: RequestValidator):
        self._storage = storage
        self._validator = validator

    async def register(self, email: str, full_name: str, password_hash: str) -> User:
        """
        Register a user with no base currency yet.

        Raises:
            InvalidInputError: If the email or name is malformed
            EmailTakenError: If the email is already registered
        """
        user = self._validator.parse(
            User,
            email=email,
            full_name=full_name,
            password_hash=password_hash,
        )
        if await self._storage.get_user_by_email(user.email) is not None:
            raise _email_taken(user.email)
        try:
            return await self._storage.insert_user(user)
        except DuplicateError:
            # Lost a race with a concurrent registration
            raise _email_taken(user.email)

    async def get(self, user_id: int) -> User:
        return await require_user(self._storage, user_id)
