from dataclasses import dataclass


@dataclass(frozen=True)
class IdentityContext:
    """
    Who is acting on the cart for the current request.

    Anonymous visitors are identified by an opaque session id, signed-in
    users by their user id. Exactly one of the two is set.
    """

    is_authenticated: bool
    session_id: str | None = None
    user_id: int | None = None

    def __post_init__(self):
        if self.is_authenticated and self.user_id is None:
            raise ValueError("An authenticated identity needs a user_id.")
        if not self.is_authenticated and not self.session_id:
            raise ValueError("An anonymous identity needs a session_id.")

    @classmethod
    def anonymous(cls, session_id: str) -> "IdentityContext":
        return cls(is_authenticated=False, session_id=session_id)

    @classmethod
    def authenticated(cls, user_id: int) -> "IdentityContext":
        return cls(is_authenticated=True, user_id=user_id)

    @property
    def owner_key(self):
        """Key that scopes every cart read and write for this identity."""
        if self.is_authenticated:
            return self.user_id
        return self.session_id
