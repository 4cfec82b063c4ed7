"""
Helper functions for Wikipedia page title normalization and validation.

Titles appear in three shapes across the dumps: display form in the XML export
("Notre Dame Fighting Irish"), storage form in the SQL tables
("Notre_Dame_Fighting_Irish") and whatever editors typed inside a wikitext link
("notre dame  Fighting_Irish#History"). Everything is funnelled through
normalize_title() before it is used as a lookup key.
"""

import re
from typing import Dict, Tuple

_WHITESPACE = re.compile(r"[\s_]+")


def normalize_title(page_title: str) -> str:
    """Returns the canonical display form of a page title.

    Args:
      page_title: The raw title, from a dump or from a wikitext link.

    Returns:
      The normalized title, or an empty string if nothing is left.

    Examples:
      "Notre_Dame_Fighting_Irish"   =>   "Notre Dame Fighting Irish"
      "  python  (language)"        =>   "Python (language)"
      "Paris#History"               =>   "Paris"
    """
    if not page_title:
        return ""
    title = page_title.split("#", 1)[0]
    title = _WHITESPACE.sub(" ", title).strip()
    if not title:
        return ""
    return title[0].upper() + title[1:]


def get_sanitized_page_title(page_title: str) -> str:
    """Validates and returns the storage form of the provided page title, the same
    format used to store page titles in the SQL dumps and the database.

    Examples:
      "Notre Dame Fighting Irish"   =>   "Notre_Dame_Fighting_Irish"
      "Farmers' market"             =>   "Farmers'_market"

    Raises:
      ValueError: If the provided page title is invalid.
    """
    validate_page_title(page_title)
    return normalize_title(page_title).replace(" ", "_")


def get_readable_page_title(sanitized_page_title: str) -> str:
    """Returns the human-readable page title from the storage form.

    Examples:
      "Notre_Dame_Fighting_Irish"   => "Notre Dame Fighting Irish"
    """
    return sanitized_page_title.strip().replace("_", " ")


def split_namespace(page_title: str, namespaces: Dict[int, str]) -> Tuple[int, str]:
    """Splits a prefixed title into its namespace key and the remaining title.

    Args:
      page_title: A title such as "Category:Physics" or "Physics".
      namespaces: Namespace key to namespace name, as read from the dump siteinfo.

    Returns:
      (namespace_key, title_without_prefix). Titles whose prefix is not a known
      namespace name belong to the main namespace and are returned unchanged.
    """
    if ":" not in page_title:
        return 0, page_title
    prefix, rest = page_title.split(":", 1)
    wanted = normalize_title(prefix).lower()
    if not wanted:
        return 0, page_title
    for key, name in namespaces.items():
        if key != 0 and name and name.lower() == wanted:
            return key, rest.strip()
    return 0, page_title


def is_str(val) -> bool:
    """Returns whether or not the provided value is a string type."""
    return isinstance(val, str)


def is_positive_int(val) -> bool:
    """Returns whether or not the provided value is a positive integer type."""
    return bool(val) and isinstance(val, int) and not isinstance(val, bool) and val > 0


def validate_page_id(page_id: int):
    """Validates the provided value is a valid page ID.

    Raises:
      ValueError: If the provided page ID is invalid.
    """
    if not is_positive_int(page_id):
        raise ValueError(
            f'Invalid page ID "{page_id}" provided. Page ID must be a positive integer.'
        )


def validate_page_title(page_title: str):
    """Validates the provided value is a valid page title.

    Raises:
      ValueError: If the provided page title is invalid.
    """
    if not page_title or not is_str(page_title) or not normalize_title(page_title):
        raise ValueError(
            f'Invalid page title "{page_title}" provided. Page title must be a non-empty string.'
        )
