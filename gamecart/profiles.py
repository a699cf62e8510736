import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from .database import connection
from .errors import ProfileError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserProfile:
    id: int
    email: str
    nickname: str
    user_type: str
    photo_url: str | None = None

    @classmethod
    def from_row(cls, row) -> "UserProfile":
        return cls(
            id=row["id"],
            email=row["email"],
            nickname=row["nickname"],
            user_type=row["user_type"],
            photo_url=row["photo_url"],
        )


_PROFILE_COLUMNS = "u.id, u.email, u.nickname, u.user_type, u.photo_url"


class UserDirectory:
    """
    Profiles, user search and friend lists.

    Friendship is one-way: adding someone puts them on your list only.
    """

    def find_by_id(self, user_id) -> UserProfile | None:
        with connection() as conn:
            row = conn.execute(
                f"SELECT {_PROFILE_COLUMNS} FROM users u WHERE u.id = ?",
                (user_id,)
            ).fetchone()
        return UserProfile.from_row(row) if row else None

    def find_by_nickname(self, nickname: str) -> UserProfile | None:
        with connection() as conn:
            row = conn.execute(
                f"SELECT {_PROFILE_COLUMNS} FROM users u WHERE u.nickname = ?",
                (nickname,)
            ).fetchone()
        return UserProfile.from_row(row) if row else None

    def search(self, nickname: str = "") -> list[UserProfile]:
        """
        Users whose nickname matches exactly (ignoring case), or everyone
        when no nickname is given.
        """
        nickname = (nickname or "").strip()
        with connection() as conn:
            if nickname:
                rows = conn.execute(
                    f"SELECT {_PROFILE_COLUMNS} FROM users u "
                    "WHERE lower(u.nickname) = lower(?) ORDER BY u.nickname",
                    (nickname,)
                ).fetchall()
            else:
                rows = conn.execute(
                    f"SELECT {_PROFILE_COLUMNS} FROM users u ORDER BY u.nickname"
                ).fetchall()
        return [UserProfile.from_row(r) for r in rows]

    def update_profile(self, user_id: int, nickname: str, email: str,
                       photo_url: str | None = None) -> UserProfile:
        nickname = (nickname or "").strip()
        email = (email or "").strip().lower()
        if not nickname or not email:
            raise ProfileError("Nickname and email are required.")

        with connection() as conn:
            taken = conn.execute(
                "SELECT 1 FROM users WHERE (nickname = ? OR email = ?) AND id != ?",
                (nickname, email, user_id)
            ).fetchone()
            if taken:
                raise ProfileError("That nickname or email is already taken.")

            conn.execute(
                "UPDATE users SET nickname = ?, email = ?, photo_url = ? WHERE id = ?",
                (nickname, email, (photo_url or "").strip() or None, user_id)
            )

        logger.info("Updated profile of user %s", user_id)
        return self.find_by_id(user_id)

    # ---- friends ----

    def add_friend(self, user_id: int, friend_id: int) -> None:
        if user_id == friend_id:
            raise ProfileError("You cannot add yourself as a friend.")
        if self.find_by_id(friend_id) is None:
            raise ProfileError("User not found.")

        created_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        with connection() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO friends (user_id, friend_id, created_at) "
                "VALUES (?, ?, ?)",
                (user_id, friend_id, created_at)
            )
        logger.info("User %s added friend %s", user_id, friend_id)

    def remove_friend(self, user_id: int, friend_id: int) -> None:
        with connection() as conn:
            conn.execute(
                "DELETE FROM friends WHERE user_id = ? AND friend_id = ?",
                (user_id, friend_id)
            )

    def is_friend(self, user_id: int, friend_id: int) -> bool:
        with connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM friends WHERE user_id = ? AND friend_id = ?",
                (user_id, friend_id)
            ).fetchone()
        return row is not None

    def list_friends(self, user_id: int) -> list[UserProfile]:
        with connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_PROFILE_COLUMNS}
                FROM friends f
                JOIN users u ON u.id = f.friend_id
                WHERE f.user_id = ?
                ORDER BY f.id
                """,
                (user_id,)
            ).fetchall()
        return [UserProfile.from_row(r) for r in rows]

    def owned_games(self, user_id: int) -> list[dict]:
        """Games a user has bought, each listed once, for the profile page."""
        with connection() as conn:
            rows = conn.execute(
                """
                SELECT g.id, g.title, g.cover_url
                FROM orders o
                JOIN order_items oi ON oi.order_id = o.id
                JOIN games g ON g.id = oi.game_id
                WHERE o.user_id = ?
                GROUP BY g.id
                ORDER BY MIN(oi.id)
                """,
                (user_id,)
            ).fetchall()
        return [dict(row) for row in rows]
