from .resolver import RedirectResolver, DEFAULT_MAX_HOPS

__all__ = ["RedirectResolver", "DEFAULT_MAX_HOPS"]
