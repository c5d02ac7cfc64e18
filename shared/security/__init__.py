from .jwt_handler import read_token_claims, token_issued_at, is_token_expired

__all__ = [
    "read_token_claims",
    "token_issued_at",
    "is_token_expired",
]
