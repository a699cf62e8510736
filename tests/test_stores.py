import sqlite3

import pytest

import db
from gamecart import CartItem, IdentityContext, SessionCartStore, SqliteCartStore, StoreUnavailable


class TestSessionCartStore:

    def test_load_missing_cart_is_empty(self):
        assert SessionCartStore({}).load("nobody") == []

    def test_save_and_load(self):
        data = {}
        store = SessionCartStore(data)

        store.save("s1", [CartItem("s1", 3), CartItem("s1", 7)])

        assert data == {"cart:s1": [3, 7]}
        assert store.load("s1") == [CartItem("s1", 3), CartItem("s1", 7)]

    def test_save_ignores_items_of_other_owners(self):
        data = {}
        SessionCartStore(data).save("s1", [CartItem("s1", 3), CartItem("s2", 4)])

        assert data == {"cart:s1": [3]}

    def test_saving_empty_list_drops_the_key(self):
        data = {"cart:s1": [3], "user_id": 9}
        SessionCartStore(data).save("s1", [])

        assert data == {"user_id": 9}

    def test_insert_is_idempotent(self):
        data = {}
        store = SessionCartStore(data)

        store.insert(CartItem("s1", 3))
        store.insert(CartItem("s1", 3))

        assert data == {"cart:s1": [3]}

    def test_delete_leaves_other_sessions_alone(self):
        data = {"cart:s1": [3, 4], "cart:s2": [3]}
        SessionCartStore(data).delete_by_owner_and_product("s1", 3)

        assert data == {"cart:s1": [4], "cart:s2": [3]}

    def test_unwritable_session_raises_store_unavailable(self):
        class BrokenSession(dict):
            def __setitem__(self, key, value):
                raise RuntimeError("session is unavailable")

        store = SessionCartStore(BrokenSession())

        with pytest.raises(StoreUnavailable):
            store.insert(CartItem("s1", 3))


class TestSqliteCartStore:

    def test_insert_and_list_in_order(self, database):
        store = SqliteCartStore()

        store.insert(CartItem(1, 5))
        store.insert(CartItem(1, 2))
        store.insert(CartItem(2, 5))

        assert store.list_by_owner(1) == [CartItem(1, 5), CartItem(1, 2)]
        assert store.list_by_owner(2) == [CartItem(2, 5)]

    def test_duplicate_insert_is_ignored(self, database):
        store = SqliteCartStore()

        store.insert(CartItem(1, 5))
        store.insert(CartItem(1, 5))

        conn = db.get_connection()
        count = conn.execute("SELECT COUNT(*) FROM cart_items").fetchone()[0]
        conn.close()
        assert count == 1

    def test_delete_is_scoped_to_owner(self, database):
        store = SqliteCartStore()
        store.insert(CartItem(1, 5))
        store.insert(CartItem(2, 5))

        store.delete_by_owner_and_product(1, 5)

        assert not store.exists(1, 5)
        assert store.exists(2, 5)

    def test_clear_is_scoped_to_owner(self, database):
        store = SqliteCartStore()
        store.insert(CartItem(1, 5))
        store.insert(CartItem(1, 6))
        store.insert(CartItem(2, 5))

        store.clear(1)

        assert store.list_by_owner(1) == []
        assert store.list_by_owner(2) == [CartItem(2, 5)]

    def test_missing_table_raises_store_unavailable(self, tmp_path, monkeypatch):
        monkeypatch.setattr(db, "DB_NAME", str(tmp_path / "empty.db"))

        with pytest.raises(StoreUnavailable) as exc_info:
            SqliteCartStore().list_by_owner(1)

        assert isinstance(exc_info.value.__cause__, sqlite3.Error)


class TestIdentityContext:

    def test_owner_key(self):
        assert IdentityContext.anonymous("abc").owner_key == "abc"
        assert IdentityContext.authenticated(7).owner_key == 7

    def test_anonymous_requires_session_id(self):
        with pytest.raises(ValueError):
            IdentityContext(is_authenticated=False)

    def test_authenticated_requires_user_id(self):
        with pytest.raises(ValueError):
            IdentityContext(is_authenticated=True, session_id="abc")
