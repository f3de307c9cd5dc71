"""Provide methods for working with accounts in the legacy database."""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .. import serialization
from ..domain import Account
from ..exceptions import NoSuchAccount, StoreUnavailable
from ..stores import AccountStore
from .models import DBAccount
from .util import LegacyDatabase

logger = logging.getLogger(__name__)


class LegacyAccounts(AccountStore):
    """
    Accounts in the legacy relational database.

    The number column is unique. Creating an account with a number that is
    already registered replaces the data of the existing row, and the
    returned account carries the existing id.
    """

    def __init__(self, db: LegacyDatabase) -> None:
        self.db = db

    def get_by_number(self, number: str) -> Optional[Account]:
        try:
            with self.db.transaction() as session:
                row = session.query(DBAccount) \
                    .filter(DBAccount.number == number) \
                    .first()
                return _to_domain(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreUnavailable(f'Failed to get {number}: {e}') from e

    def get_by_uuid(self, uuid: UUID) -> Optional[Account]:
        try:
            with self.db.transaction() as session:
                row = session.query(DBAccount) \
                    .filter(DBAccount.uuid == str(uuid)) \
                    .first()
                return _to_domain(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreUnavailable(f'Failed to get {uuid}: {e}') from e

    def create(self, account: Account) -> Tuple[Account, bool]:
        try:
            try:
                return self._create(account)
            except IntegrityError:
                # Lost a race to register the number; the retry sees the
                # winning row and takes its id.
                logger.debug('Concurrent create for %s, retrying', account.uuid)
                return self._create(account)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f'Failed to create: {e}') from e

    def update(self, account: Account) -> None:
        """
        Replace the number and data of an existing account.

        Raises
        ------
        :class:`.NoSuchAccount`
            If there is no account with the id of ``account``.

        """
        data = serialization.dumps(account)
        try:
            with self.db.transaction() as session:
                count = session.query(DBAccount) \
                    .filter(DBAccount.uuid == str(account.uuid)) \
                    .update({DBAccount.number: account.number,
                             DBAccount.data: data},
                            synchronize_session=False)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f'Failed to update: {e}') from e
        if count == 0:
            raise NoSuchAccount(f'Account {account.uuid} does not exist')

    def delete(self, uuid: UUID) -> None:
        try:
            with self.db.transaction() as session:
                session.query(DBAccount) \
                    .filter(DBAccount.uuid == str(uuid)) \
                    .delete(synchronize_session=False)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f'Failed to delete: {e}') from e

    def get_all_from(self, length: int) -> List[Account]:
        """Get the first ``length`` accounts, ordered by id."""
        return self._get_page(None, length)

    def get_all_from_uuid(self, uuid: UUID, length: int) -> List[Account]:
        """Get up to ``length`` accounts with ids after ``uuid``, in order."""
        return self._get_page(uuid, length)

    def _get_page(self, after: Optional[UUID], length: int) -> List[Account]:
        try:
            with self.db.transaction() as session:
                query = session.query(DBAccount)
                if after is not None:
                    query = query.filter(DBAccount.uuid > str(after))
                rows = query.order_by(DBAccount.uuid).limit(length).all()
                return [_to_domain(row) for row in rows]
        except SQLAlchemyError as e:
            raise StoreUnavailable(f'Failed to list accounts: {e}') from e

    def _create(self, account: Account) -> Tuple[Account, bool]:
        data = serialization.dumps(account)
        with self.db.transaction() as session:
            existing = session.query(DBAccount) \
                .filter(DBAccount.number == account.number) \
                .first()
            if existing is not None:
                existing.data = data
                return account._replace(uuid=UUID(existing.uuid)), False
            session.add(DBAccount(number=account.number,
                                  uuid=str(account.uuid), data=data))
        return account, True


def _to_domain(row: DBAccount) -> Account:
    return serialization.loads(row.data, UUID(row.uuid))
