"""
Custom exceptions for the wiki_outlinks pipeline.
"""

class WikiOutlinksException(Exception):
    """Base exception for the package."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

class DumpFormatError(WikiOutlinksException):
    """Raised when an XML or SQL dump cannot be parsed."""
    pass

class ResolverNotReadyError(WikiOutlinksException):
    """Raised when the redirect resolver is queried before resolve() or modified after it."""
    pass

class PageNotFoundException(WikiOutlinksException):
    """Raised when a specific Wikipedia page cannot be found in the index."""
    pass

class IndexNotFoundError(WikiOutlinksException):
    """Raised when the outlink index database does not exist."""
    pass
