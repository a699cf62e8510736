import logging
import warnings
from dataclasses import dataclass, field

from .cart_utils import calculate_cart_total
from .errors import DanglingCartItem, ProductNotFound
from .identity import IdentityContext
from .stores import CartItem, CartStore

logger = logging.getLogger(__name__)


def _game_id(product_id):
    """Game ids arrive as ints or as strings from URLs and forms."""
    try:
        return int(product_id)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class CartLine:
    product_id: int
    title: str
    price: float
    cover_url: str | None = None


@dataclass
class Cart:
    """
    A cart as shown to the visitor: the owner's games joined with live
    catalog data. Built on every read, never stored.
    """

    owner_key: str | int
    items: list[CartLine] = field(default_factory=list)
    total: float = 0.0

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def product_ids(self) -> list[int]:
        return [line.product_id for line in self.items]

    def __contains__(self, product_id) -> bool:
        return product_id in self.product_ids


class CartService:
    """
    One cart abstraction over the anonymous session store and the durable
    per-user store.

    Responsibilities:
      - pick the backing store from the identity
      - validate games against the catalog on add
      - keep add idempotent and remove safe on both stores
      - compute totals from live catalog prices
    """

    def __init__(self, catalog, session_store: CartStore,
                 persistent_store: CartStore):
        self.catalog = catalog
        self.session_store = session_store
        self.persistent_store = persistent_store

    def resolve_store(self, identity: IdentityContext) -> CartStore:
        if identity.is_authenticated:
            return self.persistent_store
        return self.session_store

    # ---- reads ----

    def get_cart(self, identity: IdentityContext) -> Cart:
        """
        Materialize the identity's cart.

        Items whose game has been deleted from the catalog are left out
        and reported with a DanglingCartItem warning.
        """
        owner_key = identity.owner_key
        items = self.resolve_store(identity).list_by_owner(owner_key)

        lines = []
        for item in items:
            product = self.catalog.find_by_id(item.product_id)
            if product is None:
                logger.warning(
                    "Skipping cart item of %s: game %s no longer exists",
                    owner_key, item.product_id,
                )
                warnings.warn(DanglingCartItem(owner_key, item.product_id))
                continue
            lines.append(CartLine(
                product_id=product.id,
                title=product.title,
                price=product.price,
                cover_url=product.cover_url,
            ))

        return Cart(
            owner_key=owner_key,
            items=lines,
            total=calculate_cart_total(lines),
        )

    def exists_in_cart(self, identity: IdentityContext, product_id) -> bool:
        product_id = _game_id(product_id)
        if product_id is None:
            return False
        return self.resolve_store(identity).exists(identity.owner_key, product_id)

    # ---- mutations ----

    def add_item(self, identity: IdentityContext, product_id) -> Cart:
        """
        Put a game in the cart. Adding a game that is already there
        changes nothing.
        """
        game_id = _game_id(product_id)
        product = self.catalog.find_by_id(game_id) if game_id is not None else None
        if product is None:
            raise ProductNotFound(product_id)

        if not self.exists_in_cart(identity, product.id):
            self.resolve_store(identity).insert(
                CartItem(owner_key=identity.owner_key, product_id=product.id)
            )
            logger.info("Added game %s to cart of %s", product.id, identity.owner_key)

        return self.get_cart(identity)

    def remove_item(self, identity: IdentityContext, product_id) -> Cart:
        """
        Take a game out of the cart; removing a game that is not there is
        not an error.
        """
        product_id = _game_id(product_id)
        if self.exists_in_cart(identity, product_id):
            self.resolve_store(identity).delete_by_owner_and_product(
                identity.owner_key, product_id
            )
            logger.info("Removed game %s from cart of %s", product_id, identity.owner_key)

        return self.get_cart(identity)

    def clear_cart(self, identity: IdentityContext) -> Cart:
        self.resolve_store(identity).clear(identity.owner_key)
        logger.info("Cleared cart of %s", identity.owner_key)
        return Cart(owner_key=identity.owner_key)

    def merge_session_cart(self, session_id: str, user_id: int) -> Cart:
        """
        Move an anonymous cart into a user's durable cart.

        Never called implicitly on sign in. Games that were deleted from
        the catalog meanwhile are dropped; the anonymous cart is emptied.
        """
        anonymous = IdentityContext.anonymous(session_id)
        user = IdentityContext.authenticated(user_id)

        moved = 0
        for item in self.session_store.list_by_owner(session_id):
            if self.catalog.find_by_id(item.product_id) is None:
                continue
            if not self.persistent_store.exists(user_id, item.product_id):
                self.persistent_store.insert(
                    CartItem(owner_key=user_id, product_id=item.product_id)
                )
                moved += 1

        self.session_store.clear(anonymous.owner_key)
        logger.info("Merged %d game(s) from session cart into cart of user %s",
                    moved, user_id)
        return self.get_cart(user)
