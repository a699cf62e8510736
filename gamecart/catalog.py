from dataclasses import dataclass

from .database import connection


@dataclass(frozen=True)
class Product:
    id: int
    title: str
    price: float
    description: str | None = None
    cover_url: str | None = None
    release_date: str | None = None
    developer_site: str | None = None
    developer_id: int | None = None

    @classmethod
    def from_row(cls, row) -> "Product":
        return cls(
            id=row["id"],
            title=row["title"],
            price=float(row["price"]),
            description=row["description"],
            cover_url=row["cover_url"],
            release_date=row["release_date"],
            developer_site=row["developer_site"],
            developer_id=row["developer_id"],
        )


def normalize_developer_site(url: str) -> str:
    """
    Make sure a developer site link is absolute.
    """
    url = (url or "").strip()
    if not url:
        return ""
    if url.startswith("https://"):
        return url
    if url.startswith("http://"):
        url = url[len("http://"):]
    return "https://" + url


class GameCatalog:
    """
    Read access to the games table for the cart, plus the developer-side
    create/update/delete used by the developer dashboard.
    """

    def find_by_id(self, product_id) -> Product | None:
        with connection() as conn:
            row = conn.execute(
                "SELECT * FROM games WHERE id = ?", (product_id,)
            ).fetchone()
        return Product.from_row(row) if row else None

    def list_games(self) -> list[Product]:
        with connection() as conn:
            rows = conn.execute("SELECT * FROM games ORDER BY id").fetchall()
        return [Product.from_row(r) for r in rows]

    def list_by_developer(self, developer_id: int) -> list[Product]:
        with connection() as conn:
            rows = conn.execute(
                "SELECT * FROM games WHERE developer_id = ? ORDER BY id DESC",
                (developer_id,)
            ).fetchall()
        return [Product.from_row(r) for r in rows]

    def find_owned(self, product_id, developer_id: int) -> Product | None:
        with connection() as conn:
            row = conn.execute(
                "SELECT * FROM games WHERE id = ? AND developer_id = ?",
                (product_id, developer_id)
            ).fetchone()
        return Product.from_row(row) if row else None

    def create_game(self, developer_id: int, title: str, price: float,
                    description: str = "", cover_url: str | None = None,
                    release_date: str | None = None,
                    developer_site: str = "") -> Product:
        with connection() as conn:
            cur = conn.execute(
                """
                INSERT INTO games (title, description, price, cover_url,
                                   release_date, developer_site, developer_id)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (title, description, price, cover_url, release_date,
                 normalize_developer_site(developer_site), developer_id)
            )
            game_id = cur.lastrowid
        return self.find_by_id(game_id)

    def update_game(self, product_id, developer_id: int, title: str,
                    price: float, description: str = "",
                    cover_url: str | None = None,
                    release_date: str | None = None,
                    developer_site: str = "") -> bool:
        with connection() as conn:
            cur = conn.execute(
                """
                UPDATE games
                SET title = ?, description = ?, price = ?, cover_url = ?,
                    release_date = ?, developer_site = ?
                WHERE id = ? AND developer_id = ?
                """,
                (title, description, price, cover_url, release_date,
                 normalize_developer_site(developer_site),
                 product_id, developer_id)
            )
            return cur.rowcount > 0

    def delete_game(self, product_id, developer_id: int) -> bool:
        # Signed-in carts lose the game too; session carts drop it when read.
        with connection() as conn:
            cur = conn.execute(
                "DELETE FROM games WHERE id = ? AND developer_id = ?",
                (product_id, developer_id)
            )
            if cur.rowcount == 0:
                return False
            conn.execute("DELETE FROM cart_items WHERE game_id = ?", (product_id,))
            return True
