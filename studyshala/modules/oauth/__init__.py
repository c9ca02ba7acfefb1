"""OAuth module: Google provider and the CSRF state store."""

from .google_provider import GoogleOAuthProvider, google_oauth, get_google_oauth
from .state_store import (
    OAuthStateStore,
    InMemoryOAuthStateStore,
    RedisOAuthStateStore,
    StateResult,
    create_state_store,
    get_oauth_state_store,
)

__all__ = [
    "GoogleOAuthProvider",
    "google_oauth",
    "get_google_oauth",
    "OAuthStateStore",
    "InMemoryOAuthStateStore",
    "RedisOAuthStateStore",
    "StateResult",
    "create_state_store",
    "get_oauth_state_store",
]
