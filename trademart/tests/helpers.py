"""
Helpers shared by the HTTP tests.
"""
from trademart.core.security import issue_user_token


def auth_headers(user) -> dict:
    """Bearer header for a user row, minted directly instead of logging in."""
    token, _ = issue_user_token(user.id, user.email, user.role)
    return {"Authorization": f"Bearer {token}"}
