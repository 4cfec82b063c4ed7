from .wiki_helpers import (
    get_readable_page_title,
    get_sanitized_page_title,
    normalize_title,
    split_namespace,
    validate_page_id,
    validate_page_title,
)
from .files import open_text

__all__ = [
    "get_readable_page_title",
    "get_sanitized_page_title",
    "normalize_title",
    "split_namespace",
    "validate_page_id",
    "validate_page_title",
    "open_text",
]
