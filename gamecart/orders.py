import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from .database import connection
from .errors import CartError

logger = logging.getLogger(__name__)


class EmptyCart(CartError):
    """Raised when checking out a cart without games."""


@dataclass(frozen=True)
class PlacedOrder:
    order_id: int
    user_id: int
    total: float
    items: list  # [{"game_id", "title", "price", "game_key"}, ...]


def place_order(cart_service, identity) -> PlacedOrder:
    """
    Turn a signed-in user's cart into an order.

    Every game gets its own key. The ordered games leave the cart in the
    same transaction that stores the order; games added to the cart
    meanwhile stay there.
    """
    if not identity.is_authenticated:
        raise ValueError("Only signed-in users can place orders.")

    cart = cart_service.get_cart(identity)
    if not cart.items:
        raise EmptyCart("Your cart is empty.")

    created_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
    items = []

    with connection() as conn:
        cur = conn.execute(
            "INSERT INTO orders (user_id, total_amount, created_at, status) "
            "VALUES (?, ?, ?, ?)",
            (identity.user_id, cart.total, created_at, "PLACED")
        )
        order_id = cur.lastrowid

        for line in cart.items:
            game_key = str(uuid.uuid4())
            conn.execute(
                """
                INSERT INTO order_items (order_id, game_id, price_each, game_key)
                VALUES (?, ?, ?, ?)
                """,
                (order_id, line.product_id, line.price, game_key)
            )
            items.append({
                "game_id": line.product_id,
                "title": line.title,
                "price": float(line.price),
                "game_key": game_key,
            })

        ordered_ids = [line.product_id for line in cart.items]
        placeholders = ",".join("?" for _ in ordered_ids)
        conn.execute(
            f"DELETE FROM cart_items WHERE user_id = ? AND game_id IN ({placeholders})",
            (identity.user_id, *ordered_ids)
        )

    logger.info("Order %s placed by user %s (%d games, total %.2f)",
                order_id, identity.user_id, len(items), cart.total)

    return PlacedOrder(
        order_id=order_id,
        user_id=identity.user_id,
        total=cart.total,
        items=items,
    )


def list_library(user_id: int) -> list:
    """
    Games a user has bought, newest order first, with their keys.
    Games removed from the catalog since keep their key but lose the title.
    """
    with connection() as conn:
        rows = conn.execute(
            """
            SELECT o.id AS order_id, o.created_at, oi.game_id, oi.price_each,
                   oi.game_key, g.title AS game_title
            FROM orders o
            JOIN order_items oi ON oi.order_id = o.id
            LEFT JOIN games g ON g.id = oi.game_id
            WHERE o.user_id = ?
            ORDER BY o.created_at DESC, o.id DESC, oi.id
            """,
            (user_id,)
        ).fetchall()
    return [dict(row) for row in rows]
