"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/vault.py (to apply per-route limits with @limiter.limit()).

Only the two routes that consume a credential are limited: login (every call
reads a Kubernetes secret and presents it to Vault) and unwrap (wrapped
tokens are single-use). Both share LOGIN_RATE_LIMIT.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
