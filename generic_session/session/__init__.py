from .backend import MemoryBackend, SessionBackend, StoreHealth
from .cookie import CookieIdStore, CookieOptions, SessionIdStore
from .dynamodb import DynamoDBSessionBackend
from .middleware import SessionMiddleware
from .session import DeferredSession, Session
from .store import SessionStore

__all__ = [
    "SessionBackend",
    "MemoryBackend",
    "StoreHealth",
    "SessionStore",
    "DynamoDBSessionBackend",
    "CookieOptions",
    "CookieIdStore",
    "SessionIdStore",
    "Session",
    "DeferredSession",
    "SessionMiddleware",
]
