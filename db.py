import os
import sqlite3

DB_NAME = os.environ.get("GAMECART_DB", "game_store.db")


def get_connection():
    """Return a connection to the SQLite database."""
    conn = sqlite3.connect(DB_NAME)
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    """Create tables if they do not exist."""
    conn = get_connection()
    cur = conn.cursor()

    # user_type: 'customer' or 'developer'
    cur.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            nickname TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            user_type TEXT NOT NULL CHECK (user_type IN ('customer', 'developer')),
            photo_url TEXT
        )
    """)

    # Databases created before profiles existed have no photo column.
    columns = [row["name"] for row in cur.execute("PRAGMA table_info(users)")]
    if "photo_url" not in columns:
        cur.execute("ALTER TABLE users ADD COLUMN photo_url TEXT")

    # developer_id: which developer listed the game
    cur.execute("""
        CREATE TABLE IF NOT EXISTS games (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT,
            price REAL NOT NULL,
            cover_url TEXT,
            release_date TEXT,
            developer_site TEXT,
            developer_id INTEGER,
            FOREIGN KEY (developer_id) REFERENCES users(id)
        )
    """)

    # One row per (user, game).
    cur.execute("""
        CREATE TABLE IF NOT EXISTS cart_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            game_id INTEGER NOT NULL,
            added_at TEXT NOT NULL,
            UNIQUE (user_id, game_id),
            FOREIGN KEY (user_id) REFERENCES users(id)
        )
    """)

    cur.execute("""
        CREATE TABLE IF NOT EXISTS orders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            total_amount REAL NOT NULL,
            created_at TEXT NOT NULL,
            status TEXT NOT NULL,
            FOREIGN KEY (user_id) REFERENCES users(id)
        )
    """)

    cur.execute("""
        CREATE TABLE IF NOT EXISTS order_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            order_id INTEGER NOT NULL,
            game_id INTEGER NOT NULL,
            price_each REAL NOT NULL,
            game_key TEXT NOT NULL UNIQUE,
            FOREIGN KEY (order_id) REFERENCES orders(id)
        )
    """)

    # user_id lists friend_id as a friend; the other side is a separate row.
    cur.execute("""
        CREATE TABLE IF NOT EXISTS friends (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            friend_id INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            UNIQUE (user_id, friend_id),
            CHECK (user_id != friend_id),
            FOREIGN KEY (user_id) REFERENCES users(id),
            FOREIGN KEY (friend_id) REFERENCES users(id)
        )
    """)

    conn.commit()
    conn.close()


if __name__ == "__main__":
    print("Initializing database...")
    init_db()
    print("Database setup complete.")
