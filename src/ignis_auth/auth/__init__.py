"""Progressive authentication core: levels, factors, tokens and credentials."""

from ignis_auth.auth.levels import AuthLevel, AuthMethod, Factor, ProtectedAction

__all__ = ["AuthLevel", "AuthMethod", "Factor", "ProtectedAction"]
