"""
gamecart package

Cart, catalog and checkout logic for the Game Store web app. app.py only
deals with HTTP; everything that touches cart state goes through
CartService so anonymous and signed-in visitors get the same rules.

Example:
    from gamecart import CartService, IdentityContext
"""

from .identity import IdentityContext
from .errors import (
    CartError, ProductNotFound, StoreUnavailable, DanglingCartItem, ProfileError
)
from .catalog import GameCatalog, Product
from .stores import CartItem, CartStore, SessionCartStore, SqliteCartStore
from .cart_service import Cart, CartLine, CartService

# Cart and currency helpers
from .cart_utils import calculate_cart_total, format_eur

from .orders import EmptyCart, PlacedOrder, place_order, list_library

from .profiles import UserDirectory, UserProfile

from .storage_s3 import upload_game_cover

from .aws_events import send_order_event_to_sqs, notify_order_via_sns
