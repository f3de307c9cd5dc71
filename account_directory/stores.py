"""
Uniform interface over the backing account stores.

Both the legacy relational store and the target key-value store implement
:class:`AccountStore`, so the :class:`.AccountsManager` can be written once
against an authoritative store and a shadow store.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple
from uuid import UUID

from .domain import Account


class AccountStore(ABC):
    """Capabilities of a backing account store."""

    @abstractmethod
    def get_by_number(self, number: str) -> Optional[Account]:
        """Get the account registered with ``number``, if any."""

    @abstractmethod
    def get_by_uuid(self, uuid: UUID) -> Optional[Account]:
        """Get the account with id ``uuid``, if any."""

    @abstractmethod
    def create(self, account: Account) -> Tuple[Account, bool]:
        """
        Store a new account.

        Returns
        -------
        :class:`.Account`
            The account as stored. A store may assign the id of an existing
            account that holds the same number.
        bool
            ``True`` if the account was new to the store.

        """

    @abstractmethod
    def update(self, account: Account) -> None:
        """Replace the stored state of an existing account."""

    @abstractmethod
    def delete(self, uuid: UUID) -> None:
        """Remove an account. Removing a missing account is not an error."""
