"""
Storage key names shared by persistent credential stores.

Keeping them in one place avoids the mismatched key names that break
sessions when one component writes "accessToken" and another reads
"access_token".
"""

from types import SimpleNamespace

STORAGE_KEYS = SimpleNamespace(
    access_token="accessToken",
    refresh_token="refreshToken",
    user="user",
)
