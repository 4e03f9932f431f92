from __future__ import annotations

import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import CheckConstraint, Identity, event
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import NoSuchModuleError
from sqlalchemy.schema import CreateTable

db = SQLAlchemy()

NAME_MAX_LENGTH = 50
# Range of the INT key columns.
ID_MAX = 2**31 - 1


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ships with foreign key enforcement off, per connection.
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Author(db.Model):
    """
    Author model, mapped onto the ``Author`` table.
    """
    __tablename__ = "Author"
    __table_args__ = (
        # SQLite ignores VARCHAR lengths.
        CheckConstraint(
            f"length(AuthorName) <= {NAME_MAX_LENGTH}",
            name="CK_Author_AuthorName_Length",
        ).ddl_if(dialect="sqlite"),
    )

    id = db.Column(
        "AuthorId",
        db.Integer,
        Identity(start=1, increment=1),
        primary_key=True,
        autoincrement=True,
    )
    name = db.Column("AuthorName", db.Unicode(NAME_MAX_LENGTH), nullable=False)

    # The store cascades deletes; passive_deletes keeps the ORM from loading
    # the collection just to delete it.
    books = db.relationship(
        "Book",
        back_populates="author",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Author id={self.id} name={self.name!r}>"

    def __str__(self) -> str:
        return f"{self.name}"


class Book(db.Model):
    """
    Book model, mapped onto the ``Books`` table.
    """
    __tablename__ = "Books"
    __table_args__ = (
        CheckConstraint(
            f"length(BookName) <= {NAME_MAX_LENGTH}",
            name="CK_Books_BookName_Length",
        ).ddl_if(dialect="sqlite"),
    )

    id = db.Column(
        "BookId",
        db.Integer,
        Identity(start=1, increment=1),
        primary_key=True,
        autoincrement=True,
    )
    title = db.Column("BookName", db.Unicode(NAME_MAX_LENGTH), nullable=False)
    release_date = db.Column("ReleaseDate", db.Date, nullable=True)

    author_id = db.Column(
        "AuthorId",
        db.Integer,
        db.ForeignKey(
            "Author.AuthorId",
            name="FK_Books_Author",
            ondelete="CASCADE",
            onupdate="CASCADE",
        ),
        nullable=False,
    )
    author = db.relationship("Author", back_populates="books")

    def __repr__(self) -> str:
        return f"<Book id={self.id} title={self.title!r}>"

    def __str__(self) -> str:
        return f"{self.title}"


def schema_ddl(dialect_name: str = "mssql") -> str:
    """
    Render the CREATE TABLE statements of every model for a SQLAlchemy dialect.

    Only the dialect class is loaded, so no database driver is required.
    Raises ValueError for a dialect SQLAlchemy does not know.
    """
    try:
        dialect = URL.create(dialect_name).get_dialect()()
    except NoSuchModuleError as exc:
        raise ValueError(f"Unknown SQL dialect: {dialect_name!r}") from exc

    statements = [
        str(CreateTable(table).compile(dialect=dialect)).strip() + ";"
        for table in db.metadata.sorted_tables
    ]
    return "\n\n".join(statements)
