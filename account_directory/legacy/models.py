"""Legacy database models."""

from sqlalchemy import Column, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class DBAccount(Base):  # type: ignore
    """
    Legacy account table.

    +--------+--------------+------+-----+---------+----------------+
    | Field  | Type         | Null | Key | Default | Extra          |
    +--------+--------------+------+-----+---------+----------------+
    | id     | bigint       | NO   | PRI | NULL    | auto_increment |
    | number | varchar(255) | NO   | UNI | NULL    |                |
    | uuid   | char(36)     | NO   | UNI | NULL    |                |
    | data   | text         | NO   |     | NULL    |                |
    +--------+--------------+------+-----+---------+----------------+

    ``data`` holds the JSON encoding of the account without its id; see
    :func:`account_directory.serialization.dumps`.
    """

    __tablename__ = 'accounts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    number = Column(String(255), nullable=False, unique=True)
    uuid = Column(String(36), nullable=False, unique=True)
    data = Column(Text, nullable=False)
