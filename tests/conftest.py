import os
import tempfile

# app.py creates its tables at import time; keep that away from the
# working directory.
os.environ.setdefault(
    "GAMECART_DB", os.path.join(tempfile.mkdtemp(prefix="gamecart-"), "import.db")
)

import pytest
from werkzeug.security import generate_password_hash

import db
from gamecart import CartService, GameCatalog, SessionCartStore, SqliteCartStore


@pytest.fixture
def database(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "DB_NAME", str(tmp_path / "game_store.db"))
    db.init_db()
    return db.DB_NAME


@pytest.fixture
def create_user(database):
    def _create(email, password="secret", user_type="customer", nickname=None):
        conn = db.get_connection()
        cur = conn.execute(
            "INSERT INTO users (email, nickname, password_hash, user_type) "
            "VALUES (?, ?, ?, ?)",
            (email, nickname or email.split("@")[0],
             generate_password_hash(password), user_type)
        )
        conn.commit()
        user_id = cur.lastrowid
        conn.close()
        return user_id
    return _create


@pytest.fixture
def developer_id(create_user):
    return create_user("dev@studio.test", user_type="developer")


@pytest.fixture
def catalog(database):
    return GameCatalog()


@pytest.fixture
def make_game(catalog, developer_id):
    def _make(title="Hollow Peaks", price=19.99, **kwargs):
        return catalog.create_game(developer_id, title, price, **kwargs)
    return _make


@pytest.fixture
def session_data():
    """Plain dict standing in for the Flask session."""
    return {}


@pytest.fixture
def service(catalog, session_data):
    return CartService(
        catalog=catalog,
        session_store=SessionCartStore(session_data),
        persistent_store=SqliteCartStore(),
    )


@pytest.fixture
def flask_app(database, monkeypatch):
    from app import app
    import gamecart.aws_events as aws_events

    monkeypatch.setattr(aws_events, "SQS_QUEUE_URL", None)
    monkeypatch.setattr(aws_events, "SNS_TOPIC_ARN", None)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(flask_app):
    with flask_app.test_client() as c:
        yield c
