class CartError(Exception):
    """Base class for cart failures that are scoped to a single request."""


class ProductNotFound(CartError):
    """
    Raised when a cart operation references a game that is not in the catalog.
    """

    def __init__(self, product_id):
        super().__init__(f"Game {product_id} not found.")
        self.product_id = product_id


class StoreUnavailable(CartError):
    """
    Raised when the session store, the cart table or the catalog
    cannot be read or written.
    """


class DanglingCartItem(UserWarning):
    """
    Warning emitted when a stored cart item points at a game that was
    deleted after it was added. The item is left out of the cart.
    """

    def __init__(self, owner_key, product_id):
        super().__init__(
            f"Cart of {owner_key} references missing game {product_id}; skipped."
        )
        self.owner_key = owner_key
        self.product_id = product_id


class ProfileError(Exception):
    """
    Raised when a profile or friend list change is refused, e.g. a taken
    nickname or befriending yourself.
    """
