"""
Connection providers for the source and destination databases.

Each provider opens a fresh connection per use, verifies it with a ping,
and closes it on every exit path. Driver-specific providers live in their
own modules so that importing the base does not load either driver:

    from cardsync.connections.firebird import FirebirdConnectionProvider
    from cardsync.connections.postgres import PostgresConnectionProvider
"""

from .base import BaseConnectionProvider, ConnectionUnavailable

__all__ = [
    "BaseConnectionProvider",
    "ConnectionUnavailable",
]
