"""
OAuth2 token model shared by the authorization-code flow.
"""

import time
from dataclasses import dataclass, field
from typing import Any

from storeverify.exceptions import OAuthExchangeError


@dataclass(frozen=True)
class OAuthToken:
    """OAuth token data."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    issued_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        """Validate token fields."""
        if not self.access_token:
            raise ValueError("access_token cannot be empty")

    @classmethod
    def from_response(cls, data: Any, previous: "OAuthToken | None" = None) -> "OAuthToken":
        """
        Build from a token endpoint response.

        A refresh response may omit refresh_token; the previous one is kept.

        Raises:
            OAuthExchangeError: If the response carries no access token
        """
        if not isinstance(data, dict) or not data.get("access_token"):
            raise OAuthExchangeError("token response has no access_token")

        expires_in = data.get("expires_in")
        if expires_in is not None:
            try:
                expires_in = int(expires_in)
            except (TypeError, ValueError) as exc:
                raise OAuthExchangeError(f"invalid expires_in: {expires_in!r}") from exc

        refresh_token = data.get("refresh_token")
        if refresh_token is None and previous is not None:
            refresh_token = previous.refresh_token

        return cls(
            access_token=str(data["access_token"]),
            token_type=str(data.get("token_type") or "Bearer"),
            expires_in=expires_in,
            refresh_token=refresh_token,
        )

    @property
    def authorization_header(self) -> str:
        # Some servers answer "bearer"; the header wants the canonical form
        token_type = "Bearer" if self.token_type.lower() == "bearer" else self.token_type
        return f"{token_type} {self.access_token}"

    def is_expired(self, leeway: float = 10.0) -> bool:
        """Check if the token is expired, or will be within ``leeway`` seconds."""
        if self.expires_in is None:
            return False
        return time.time() >= self.issued_at + self.expires_in - leeway
