"""
Storage backends for the context vault.

VaultBackend defines the append-only interface the synchronizer and the
recovery composer depend on; SQLiteVault is the local implementation.
"""

from .base import VaultBackend
from .sqlite import SQLiteVault

__all__ = [
    "VaultBackend",
    "SQLiteVault",
]
