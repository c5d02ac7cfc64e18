from .api import build_api_client, TOKEN_KEY

__all__ = ["build_api_client", "TOKEN_KEY"]
