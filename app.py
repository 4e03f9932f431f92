import os
from datetime import date, datetime
from typing import Optional

import click
from flask import Flask, render_template, request, redirect, url_for, flash
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import NotFound, BadRequest, InternalServerError

from data_models import db, Author, Book, ID_MAX, schema_ddl

# -----------------------------
# App & DB setup
# -----------------------------
app = Flask(__name__)
app.secret_key = os.getenv("FLASK_SECRET_KEY", "dev-secret-key")
app.logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

basedir = os.path.abspath(os.path.dirname(__file__))
database_uri = os.getenv("DB_CONNECTION")
if not database_uri:
    os.makedirs(os.path.join(basedir, "data"), exist_ok=True)
    database_uri = f"sqlite:///{os.path.join(basedir, 'data/library.sqlite')}"
app.config["SQLALCHEMY_DATABASE_URI"] = database_uri
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

db.init_app(app)

with app.app_context():
    db.create_all()


# -----------------------------
# Form parsing
# -----------------------------
def form_text(field: str) -> Optional[str]:
    """
    Stripped form value, or None when blank so NOT NULL columns reject it.
    """
    value = (request.form.get(field) or "").strip()
    return value or None


def parse_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a date string in ISO format (YYYY-MM-DD). Returns date or None if empty.
    Raises BadRequest on invalid format.
    """
    value = (value or "").strip()
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise BadRequest("Invalid date format. Use YYYY-MM-DD.") from exc


def parse_author_id(value: Optional[str]) -> Optional[int]:
    """
    Parse the author select. Blank gives None, left for the store to reject.
    """
    value = (value or "").strip()
    if not value:
        return None
    if not value.isdecimal():
        raise BadRequest("author_id must be a valid integer.")
    author_id = int(value)
    if author_id > ID_MAX:
        raise BadRequest("author_id is out of range.")
    return author_id


def book_values(book: Book) -> dict:
    return {
        "title": book.title or "",
        "release_date": book.release_date.isoformat() if book.release_date else "",
        "author_id": str(book.author_id or ""),
    }


def rejected(template: str, message: str, **context):
    """
    Re-render a form with the submitted values and a 400 status.
    """
    flash(message, "error")
    return render_template(template, values=request.form, **context), 400


def store_rejected(template: str, exc: IntegrityError, **context):
    db.session.rollback()
    app.logger.warning("Store rejected %s %s: %s", request.method, request.path, exc.orig)
    return rejected(template, "Rejected by the database. Check the values and try again.", **context)


def get_author_or_404(author_id: int) -> Author:
    author = db.session.get(Author, author_id) if author_id <= ID_MAX else None
    if not author:
        raise NotFound("Author not found.")
    return author


def get_book_or_404(book_id: int) -> Book:
    book = db.session.get(Book, book_id) if book_id <= ID_MAX else None
    if not book:
        raise NotFound("Book not found.")
    return book


def all_authors() -> list[Author]:
    return Author.query.order_by(Author.name.asc()).all()


# -----------------------------
# Error handlers (one template)
# -----------------------------
@app.errorhandler(404)
def handle_404(e):
    return render_template("error.html", code=404, message=e.description), 404


@app.errorhandler(400)
def handle_400(e):
    return render_template("error.html", code=400, message=e.description), 400


@app.errorhandler(500)
def handle_500(e):
    return render_template("error.html", code=500, message="Internal server error."), 500


# -----------------------------
# CLI
# -----------------------------
@app.cli.command("init-db")
def init_db_command():
    """Create the Author and Books tables."""
    db.create_all()
    click.echo("Initialized the database.")


@app.cli.command("drop-db")
def drop_db_command():
    """Drop the Author and Books tables."""
    db.drop_all()
    click.echo("Dropped the database.")


@app.cli.command("show-schema")
@click.option("--dialect", default="mssql", show_default=True, help="SQLAlchemy dialect name.")
def show_schema_command(dialect):
    """Print the DDL the models produce for a SQL dialect."""
    try:
        click.echo(schema_ddl(dialect))
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--dialect") from exc


# -----------------------------
# Routes
# -----------------------------
@app.route("/")
def home():
    return redirect(url_for("list_books"))


# Authors
@app.route("/authors")
def list_authors():
    authors = Author.query.order_by(Author.id.asc()).all()
    return render_template("authors/index.html", authors=authors)


@app.route("/authors/<int:author_id>")
def author_details(author_id: int):
    author = get_author_or_404(author_id)
    books = Book.query.filter_by(author_id=author.id).order_by(Book.id.asc()).all()
    return render_template("authors/details.html", author=author, books=books)


@app.route("/authors/create", methods=["GET", "POST"])
def create_author():
    """
    Insert an author. The key is assigned by the store.
    """
    if request.method == "POST":
        author = Author(name=form_text("name"))
        try:
            db.session.add(author)
            db.session.commit()
        except IntegrityError as exc:
            return store_rejected("authors/create.html", exc)
        except SQLAlchemyError as exc:
            db.session.rollback()
            app.logger.exception("Failed to add author")
            raise InternalServerError("Database error while adding author.") from exc

        app.logger.info("Created author %s", author.id)
        flash("Author added successfully.", "success")
        return redirect(url_for("list_authors"))

    return render_template("authors/create.html", values={})


@app.route("/authors/<int:author_id>/edit", methods=["GET", "POST"])
def edit_author(author_id: int):
    author = get_author_or_404(author_id)

    if request.method == "POST":
        try:
            author.name = form_text("name")
            db.session.commit()
        except IntegrityError as exc:
            return store_rejected("authors/edit.html", exc, author=author)
        except SQLAlchemyError as exc:
            db.session.rollback()
            app.logger.exception("Failed to update author")
            raise InternalServerError("Database error while updating author.") from exc

        app.logger.info("Updated author %s", author.id)
        flash("Author updated successfully.", "success")
        return redirect(url_for("list_authors"))

    return render_template("authors/edit.html", author=author, values={"name": author.name})


@app.route("/authors/<int:author_id>/delete", methods=["GET", "POST"])
def delete_author(author_id: int):
    """
    Confirm, then delete an author. The store removes their books.
    """
    author = get_author_or_404(author_id)

    if request.method == "POST":
        try:
            db.session.delete(author)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            app.logger.exception("Failed to delete author")
            raise InternalServerError("Database error while deleting author.") from exc

        app.logger.info("Deleted author %s", author_id)
        flash("Author deleted successfully.", "success")
        return redirect(url_for("list_authors"))

    book_count = Book.query.filter_by(author_id=author.id).count()
    return render_template("authors/delete.html", author=author, book_count=book_count)


# Books
@app.route("/books")
def list_books():
    books = Book.query.order_by(Book.id.asc()).all()
    return render_template("books/index.html", books=books)


@app.route("/books/<int:book_id>")
def book_details(book_id: int):
    book = get_book_or_404(book_id)
    return render_template("books/details.html", book=book)


@app.route("/books/create", methods=["GET", "POST"])
def create_book():
    """
    Insert a book. Author existence is checked by the foreign key, not here.
    """
    authors = all_authors()

    if request.method == "POST":
        try:
            book = Book(
                title=form_text("title"),
                release_date=parse_date(request.form.get("release_date")),
                author_id=parse_author_id(request.form.get("author_id")),
            )
            db.session.add(book)
            db.session.commit()
        except BadRequest as br:
            db.session.rollback()
            return rejected("books/create.html", br.description, authors=authors)
        except IntegrityError as exc:
            return store_rejected("books/create.html", exc, authors=authors)
        except SQLAlchemyError as exc:
            db.session.rollback()
            app.logger.exception("Failed to add book")
            raise InternalServerError("Database error while adding book.") from exc

        app.logger.info("Created book %s for author %s", book.id, book.author_id)
        flash("Book added successfully.", "success")
        return redirect(url_for("list_books"))

    return render_template("books/create.html", authors=authors, values={})


@app.route("/books/<int:book_id>/edit", methods=["GET", "POST"])
def edit_book(book_id: int):
    book = get_book_or_404(book_id)
    authors = all_authors()

    if request.method == "POST":
        try:
            book.title = form_text("title")
            book.release_date = parse_date(request.form.get("release_date"))
            book.author_id = parse_author_id(request.form.get("author_id"))
            db.session.commit()
        except BadRequest as br:
            db.session.rollback()
            return rejected("books/edit.html", br.description, book=book, authors=authors)
        except IntegrityError as exc:
            return store_rejected("books/edit.html", exc, book=book, authors=authors)
        except SQLAlchemyError as exc:
            db.session.rollback()
            app.logger.exception("Failed to update book")
            raise InternalServerError("Database error while updating book.") from exc

        app.logger.info("Updated book %s", book.id)
        flash("Book updated successfully.", "success")
        return redirect(url_for("list_books"))

    return render_template("books/edit.html", book=book, authors=authors, values=book_values(book))


@app.route("/books/<int:book_id>/delete", methods=["GET", "POST"])
def delete_book(book_id: int):
    book = get_book_or_404(book_id)

    if request.method == "POST":
        try:
            db.session.delete(book)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            app.logger.exception("Failed to delete book")
            raise InternalServerError("Database error while deleting book.") from exc

        app.logger.info("Deleted book %s", book_id)
        flash("Book deleted successfully.", "success")
        return redirect(url_for("list_books"))

    return render_template("books/delete.html", book=book)


if __name__ == "__main__":
    # You can change the port if 5000 is taken
    app.run(host="0.0.0.0", port=5000, debug=True)
