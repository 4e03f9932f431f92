import os

# Must be set before the application module is imported.
os.environ["DB_CONNECTION"] = "sqlite://"

import pytest

from app import app as flask_app
from data_models import db, Author, Book


@pytest.fixture
def app():
    """Application bound to a fresh in-memory database."""
    flask_app.config.update(TESTING=True)
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()


@pytest.fixture
def session(app):
    """Session of an app context held open for the whole test."""
    with app.app_context():
        yield db.session
        db.session.rollback()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seeded(app):
    """Two authors, three books. Returns the assigned ids."""
    with app.app_context():
        tolkien = Author(name="J. R. R. Tolkien")
        le_guin = Author(name="Ursula K. Le Guin")
        db.session.add_all([tolkien, le_guin])
        db.session.flush()
        db.session.add_all([
            Book(title="The Hobbit", author_id=tolkien.id),
            Book(title="The Silmarillion", author_id=tolkien.id),
            Book(title="A Wizard of Earthsea", author_id=le_guin.id),
        ])
        db.session.commit()
        return {"tolkien": tolkien.id, "le_guin": le_guin.id}
