from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone

from .database import connection
from .errors import StoreUnavailable


@dataclass(frozen=True)
class CartItem:
    """One game held in one owner's cart."""

    owner_key: str | int
    product_id: int


class CartStore(ABC):
    """
    Where cart items live for one kind of owner.

    Every method takes the owner key explicitly and must only ever see or
    touch that owner's items.
    """

    @abstractmethod
    def list_by_owner(self, owner_key) -> list[CartItem]:
        """Items of one owner, oldest first."""

    @abstractmethod
    def exists(self, owner_key, product_id) -> bool:
        ...

    @abstractmethod
    def insert(self, item: CartItem) -> None:
        """Add the item; adding an item that is already stored does nothing."""

    @abstractmethod
    def delete_by_owner_and_product(self, owner_key, product_id) -> None:
        """Remove the item if it is stored."""

    @abstractmethod
    def clear(self, owner_key) -> None:
        ...


class SessionCartStore(CartStore):
    """
    Cart for anonymous visitors, kept in the web session.

    `session` is any mutable mapping (the Flask session in the app). Each
    anonymous owner gets its own key, holding the ordered list of game ids.
    """

    KEY_PREFIX = "cart:"

    def __init__(self, session):
        self.session = session

    def _key(self, session_id) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    def load(self, session_id) -> list[CartItem]:
        try:
            product_ids = self.session.get(self._key(session_id)) or []
        except (RuntimeError, TypeError) as e:
            raise StoreUnavailable(f"Cannot read session cart: {e}") from e
        return [CartItem(owner_key=session_id, product_id=int(pid))
                for pid in product_ids]

    def save(self, session_id, items: list[CartItem]) -> None:
        product_ids = [int(item.product_id) for item in items
                       if item.owner_key == session_id]
        try:
            if product_ids:
                self.session[self._key(session_id)] = product_ids
            else:
                self.session.pop(self._key(session_id), None)
        except (RuntimeError, TypeError) as e:
            raise StoreUnavailable(f"Cannot write session cart: {e}") from e

    def list_by_owner(self, owner_key) -> list[CartItem]:
        return self.load(owner_key)

    def exists(self, owner_key, product_id) -> bool:
        product_id = int(product_id)
        return any(item.product_id == product_id
                   for item in self.load(owner_key))

    def insert(self, item: CartItem) -> None:
        product_id = int(item.product_id)
        items = self.load(item.owner_key)
        if any(existing.product_id == product_id for existing in items):
            return
        items.append(CartItem(owner_key=item.owner_key, product_id=product_id))
        self.save(item.owner_key, items)

    def delete_by_owner_and_product(self, owner_key, product_id) -> None:
        product_id = int(product_id)
        items = self.load(owner_key)
        remaining = [item for item in items if item.product_id != product_id]
        if len(remaining) != len(items):
            self.save(owner_key, remaining)

    def clear(self, owner_key) -> None:
        self.save(owner_key, [])


class SqliteCartStore(CartStore):
    """
    Durable cart for signed-in users, one cart_items row per (user, game).
    """

    def list_by_owner(self, owner_key) -> list[CartItem]:
        with connection() as conn:
            rows = conn.execute(
                "SELECT user_id, game_id FROM cart_items "
                "WHERE user_id = ? ORDER BY id",
                (owner_key,)
            ).fetchall()
        return [CartItem(owner_key=r["user_id"], product_id=r["game_id"])
                for r in rows]

    def exists(self, owner_key, product_id) -> bool:
        with connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM cart_items WHERE user_id = ? AND game_id = ?",
                (owner_key, product_id)
            ).fetchone()
        return row is not None

    def insert(self, item: CartItem) -> None:
        added_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        with connection() as conn:
            # The unique constraint makes concurrent adds converge.
            conn.execute(
                "INSERT OR IGNORE INTO cart_items (user_id, game_id, added_at) "
                "VALUES (?, ?, ?)",
                (item.owner_key, item.product_id, added_at)
            )

    def delete_by_owner_and_product(self, owner_key, product_id) -> None:
        with connection() as conn:
            conn.execute(
                "DELETE FROM cart_items WHERE user_id = ? AND game_id = ?",
                (owner_key, product_id)
            )

    def clear(self, owner_key) -> None:
        with connection() as conn:
            conn.execute("DELETE FROM cart_items WHERE user_id = ?", (owner_key,))
