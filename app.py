import os
import sqlite3
import uuid
from flask import (
    Flask, render_template, redirect,
    url_for, session, flash, request
)
from werkzeug.security import generate_password_hash, check_password_hash
from db import get_connection, init_db
from gamecart import (
    CartService, IdentityContext, GameCatalog, SessionCartStore, SqliteCartStore,
    UserDirectory, ProductNotFound, StoreUnavailable, EmptyCart, ProfileError,
    format_eur, place_order, list_library,
    upload_game_cover, send_order_event_to_sqs, notify_order_via_sns
)

app = Flask(__name__)
app.secret_key = os.environ.get("GAMECART_SECRET_KEY", "change_this_secret_key")
app.jinja_env.filters["eur"] = format_eur

catalog = GameCatalog()
persistent_store = SqliteCartStore()
users = UserDirectory()

# DB INIT
with app.app_context():
    init_db()

# HELPERS
def get_identity():
    """
    IdentityContext for this request. Anonymous visitors get a random
    session id the first time they are seen.
    """
    user_id = session.get("user_id")
    if user_id:
        return IdentityContext.authenticated(user_id)

    session_id = session.get("cart_session_id")
    if not session_id:
        session_id = uuid.uuid4().hex
        session["cart_session_id"] = session_id
    return IdentityContext.anonymous(session_id)


def get_cart_service():
    return CartService(
        catalog=catalog,
        session_store=SessionCartStore(session),
        persistent_store=persistent_store,
    )


def pending_session_cart():
    """Games left in the anonymous cart of this browser session."""
    session_id = session.get("cart_session_id")
    if not session_id:
        return []
    return SessionCartStore(session).list_by_owner(session_id)


def get_current_user():
    user_id = session.get("user_id")
    if not user_id:
        return None

    conn = get_connection()
    cur = conn.cursor()
    cur.execute(
        "SELECT id, email, nickname, user_type, photo_url FROM users WHERE id = ?",
        (user_id,)
    )
    user = cur.fetchone()
    conn.close()
    return user


def require_developer():
    user = get_current_user()
    if not user:
        flash("Please log in first.")
        return None
    if user["user_type"] != "developer":
        flash("You must be a developer to access this page.")
        return None
    return user


def game_form_values():
    """
    Read the developer game form. Returns (values, error).
    """
    title = request.form.get("title", "").strip()
    price_str = request.form.get("price", "").strip()
    values = {
        "title": title,
        "description": request.form.get("description", "").strip(),
        "release_date": request.form.get("release_date", "").strip() or None,
        "developer_site": request.form.get("developer_site", "").strip(),
    }

    if not title or not price_str:
        return values, "Title and price are required."
    try:
        price = float(price_str)
    except ValueError:
        return values, "Price must be a valid number."
    if price < 0:
        return values, "Price cannot be negative."
    values["price"] = price
    return values, None


def maybe_upload_cover(user, current_url=None):
    image_file = request.files.get("cover_file")
    if not image_file or not image_file.filename:
        return current_url
    try:
        return upload_game_cover(image_file, user["id"])
    except RuntimeError as e:
        flash(f"Cover upload failed: {e}")
        return current_url


@app.context_processor
def inject_cart_count():
    if request.endpoint == "static":
        return {}
    cart = get_cart_service().get_cart(get_identity())
    return {"cart_count": cart.count, "user": get_current_user()}


@app.errorhandler(StoreUnavailable)
def store_unavailable(e):
    app.logger.error("Store unavailable: %s", e)
    return "The store is temporarily unavailable. Please try again later.", 503


# PUBLIC ROUTES

@app.route("/")
def index():
    return render_template(
        "index.html",
        title="Game Store",
        games=catalog.list_games(),
    )


@app.route("/game/<int:game_id>")
def game_detail(game_id):
    game = catalog.find_by_id(game_id)

    if game is None:
        flash("Game not found.")
        return redirect(url_for("index"))

    in_cart = get_cart_service().exists_in_cart(get_identity(), game_id)

    return render_template(
        "game_detail.html",
        title=game.title,
        game=game,
        in_cart=in_cart,
    )


# CART

@app.route("/cart")
def cart():
    identity = get_identity()
    current = get_cart_service().get_cart(identity)

    return render_template(
        "cart.html",
        title="Your Cart",
        cart=current,
        can_merge=identity.is_authenticated and bool(pending_session_cart()),
    )


@app.route("/cart/add/<int:game_id>", methods=["POST"])
def add_to_cart(game_id):
    try:
        get_cart_service().add_item(get_identity(), game_id)
    except ProductNotFound:
        flash("Game not found.")
        return redirect(url_for("index"))

    flash("Added to cart.")
    return redirect(url_for("cart"))


@app.route("/cart/remove/<int:game_id>", methods=["POST"])
def remove_from_cart(game_id):
    get_cart_service().remove_item(get_identity(), game_id)
    flash("Removed from cart.")
    return redirect(url_for("cart"))


@app.route("/cart/clear", methods=["POST"])
def clear_cart():
    get_cart_service().clear_cart(get_identity())
    flash("Cart cleared.")
    return redirect(url_for("cart"))


@app.route("/cart/merge", methods=["POST"])
def merge_cart():
    user_id = session.get("user_id")
    session_id = session.get("cart_session_id")
    if not user_id:
        flash("Please log in to keep your cart.")
        return redirect(url_for("login"))

    if session_id:
        merged = get_cart_service().merge_session_cart(session_id, user_id)
        flash(f"Cart saved to your account ({merged.count} games).")
    return redirect(url_for("cart"))


# CHECKOUT AND LIBRARY

@app.route("/checkout", methods=["GET", "POST"])
def checkout():
    user = get_current_user()
    if not user:
        flash("Please log in to check out.")
        return redirect(url_for("login"))

    identity = get_identity()
    service = get_cart_service()
    current = service.get_cart(identity)

    if not current.items:
        flash("Your cart is empty.")
        return redirect(url_for("cart"))

    if request.method == "POST":
        try:
            order = place_order(service, identity)
        except EmptyCart as e:
            flash(str(e))
            return redirect(url_for("cart"))

        # Event publication is non-critical: the order is already stored.
        try:
            send_order_event_to_sqs(order)
        except RuntimeError as e:
            app.logger.warning("SQS send error: %s", e)

        try:
            notify_order_via_sns(order, user["email"])
        except RuntimeError as e:
            app.logger.warning("SNS publish error: %s", e)

        flash(f"Order {order.order_id} placed successfully.")
        return redirect(url_for("library"))

    return render_template(
        "checkout.html",
        title="Checkout",
        cart=current,
    )


@app.route("/library")
def library():
    user = get_current_user()
    if not user:
        flash("Please log in to view your library.")
        return redirect(url_for("login"))

    return render_template(
        "library.html",
        title="My Library",
        games=list_library(user["id"]),
    )


# DEVELOPER ROUTES

@app.route("/developer")
def developer_dashboard():
    user = require_developer()
    if not user:
        return redirect(url_for("index"))

    return render_template(
        "developer_dashboard.html",
        title="Developer Dashboard",
        games=catalog.list_by_developer(user["id"]),
    )


@app.route("/developer/games/new", methods=["GET", "POST"])
def developer_add_game():
    user = require_developer()
    if not user:
        return redirect(url_for("index"))

    values = {}
    if request.method == "POST":
        values, error = game_form_values()
        if error:
            flash(error)
        else:
            cover_url = maybe_upload_cover(user)
            catalog.create_game(user["id"], cover_url=cover_url, **values)
            flash("Game added successfully.")
            return redirect(url_for("developer_dashboard"))

    return render_template(
        "developer_game_form.html",
        title="Add Game",
        game=values,
    )


@app.route("/developer/games/<int:game_id>/edit", methods=["GET", "POST"])
def developer_edit_game(game_id):
    user = require_developer()
    if not user:
        return redirect(url_for("index"))

    game = catalog.find_owned(game_id, user["id"])
    if not game:
        flash("Game not found or you do not have permission to edit it.")
        return redirect(url_for("developer_dashboard"))

    if request.method == "POST":
        values, error = game_form_values()
        if error:
            flash(error)
        else:
            cover_url = maybe_upload_cover(user, game.cover_url)
            catalog.update_game(game_id, user["id"], cover_url=cover_url, **values)
            flash("Game updated successfully.")
            return redirect(url_for("developer_dashboard"))

    return render_template(
        "developer_game_form.html",
        title="Edit Game",
        game=game,
    )


@app.route("/developer/games/<int:game_id>/delete", methods=["POST"])
def developer_delete_game(game_id):
    user = require_developer()
    if not user:
        return redirect(url_for("index"))

    if catalog.delete_game(game_id, user["id"]):
        flash("Game deleted.")
    else:
        flash("Game not found or you do not have permission to delete it.")
    return redirect(url_for("developer_dashboard"))


# PROFILES AND FRIENDS

@app.route("/users")
def user_search():
    user = get_current_user()
    if not user:
        flash("Please log in first.")
        return redirect(url_for("login"))

    nickname = request.args.get("nickname", "").strip()
    return render_template(
        "users.html",
        title="Find Users",
        nickname=nickname,
        results=users.search(nickname),
    )


@app.route("/users/<nickname>")
def profile(nickname):
    user = get_current_user()
    if not user:
        flash("Please log in first.")
        return redirect(url_for("login"))

    shown = users.find_by_nickname(nickname)
    if shown is None:
        flash("User not found.")
        return redirect(url_for("user_search"))

    is_self = shown.id == user["id"]
    return render_template(
        "profile.html",
        title=shown.nickname,
        profile=shown,
        is_self=is_self,
        is_friend=not is_self and users.is_friend(user["id"], shown.id),
        games=users.owned_games(shown.id),
        friends=users.list_friends(shown.id),
    )


@app.route("/profile")
def my_profile():
    user = get_current_user()
    if not user:
        flash("Please log in first.")
        return redirect(url_for("login"))
    return redirect(url_for("profile", nickname=user["nickname"]))


@app.route("/profile/edit", methods=["GET", "POST"])
def edit_profile():
    user = get_current_user()
    if not user:
        flash("Please log in first.")
        return redirect(url_for("login"))

    if request.method == "POST":
        try:
            updated = users.update_profile(
                user["id"],
                nickname=request.form.get("nickname", ""),
                email=request.form.get("email", ""),
                photo_url=request.form.get("photo_url", ""),
            )
        except ProfileError as e:
            flash(str(e))
            return redirect(url_for("edit_profile"))

        session["user_email"] = updated.email
        flash("Profile updated.")
        return redirect(url_for("profile", nickname=updated.nickname))

    return render_template(
        "profile_edit.html",
        title="Edit Profile",
        profile=users.find_by_id(user["id"]),
    )


@app.route("/friends/add/<int:friend_id>", methods=["POST"])
def add_friend(friend_id):
    user = get_current_user()
    if not user:
        flash("Please log in first.")
        return redirect(url_for("login"))

    try:
        users.add_friend(user["id"], friend_id)
    except ProfileError as e:
        flash(str(e))
        return redirect(url_for("user_search"))

    friend = users.find_by_id(friend_id)
    flash(f"{friend.nickname} added to your friends.")
    return redirect(url_for("profile", nickname=friend.nickname))


@app.route("/friends/remove/<int:friend_id>", methods=["POST"])
def remove_friend(friend_id):
    user = get_current_user()
    if not user:
        flash("Please log in first.")
        return redirect(url_for("login"))

    users.remove_friend(user["id"], friend_id)
    flash("Friend removed.")
    return redirect(url_for("my_profile"))


# ----- AUTH -----

@app.route("/register", methods=["GET", "POST"])
def register():
    if request.method == "POST":
        email = request.form.get("email", "").strip().lower()
        nickname = request.form.get("nickname", "").strip()
        password = request.form.get("password", "")
        user_type = request.form.get("user_type", "customer")
        photo_url = request.form.get("photo_url", "").strip() or None

        if user_type not in ("customer", "developer"):
            user_type = "customer"

        if not email or not password or not nickname:
            flash("Email, nickname and password are required.")
            return redirect(url_for("register"))

        conn = get_connection()
        cur = conn.cursor()
        try:
            password_hash = generate_password_hash(password)
            cur.execute(
                "INSERT INTO users (email, nickname, password_hash, user_type, photo_url) "
                "VALUES (?, ?, ?, ?, ?)",
                (email, nickname, password_hash, user_type, photo_url)
            )
            conn.commit()
            flash("Registration successful. Please log in.")
            return redirect(url_for("login"))
        except sqlite3.IntegrityError as e:
            flash("Error creating user. Maybe email or nickname already exists.")
            app.logger.warning("Register error: %s", e)
            return redirect(url_for("register"))
        finally:
            conn.close()

    return render_template("register.html", title="Register")


@app.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "POST":
        email = request.form.get("email", "").strip().lower()
        password = request.form.get("password", "")

        conn = get_connection()
        cur = conn.cursor()
        cur.execute(
            "SELECT * FROM users WHERE email = ?",
            (email,)
        )
        user = cur.fetchone()
        conn.close()

        if user and check_password_hash(user["password_hash"], password):
            # The anonymous cart stays in the session; it is only moved to
            # the account through /cart/merge.
            session["user_id"] = user["id"]
            session["user_email"] = user["email"]
            session["user_type"] = user["user_type"]
            flash("Logged in successfully.")

            if user["user_type"] == "developer":
                return redirect(url_for("developer_dashboard"))
            else:
                return redirect(url_for("index"))
        else:
            flash("Invalid email or password.")
            return redirect(url_for("login"))

    return render_template("login.html", title="Login")


@app.route("/logout")
def logout():
    session.pop("user_id", None)
    session.pop("user_email", None)
    session.pop("user_type", None)
    flash("Logged out.")
    return redirect(url_for("index"))


if __name__ == "__main__":
    app.run(debug=True)
