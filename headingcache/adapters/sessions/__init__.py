from headingcache.adapters.sessions.registry import InMemorySessionRegistry, SessionHandle

__all__ = ["InMemorySessionRegistry", "SessionHandle"]
