"""Helpers for pulling query parameters out of URLs."""

from typing import List, Optional, Union
from urllib.parse import parse_qs, urlsplit


def get_query_string(url: str) -> Optional[str]:
    """
    Return the query string of a URL.

    Args:
        url: Absolute or relative URL

    Returns:
        The part after ``?`` without the fragment, or None when the URL has no query
    """
    query = urlsplit(url).query
    return query or None


def get_parameter(query: str, name: str) -> Optional[Union[str, List[str]]]:
    """
    Return a parameter from a query string.

    A name given once yields a string, a name given several times yields the
    list of its values, a missing name yields None. Blank values are kept.
    """
    values = parse_qs(query, keep_blank_values=True).get(name)
    if not values:
        return None
    return values[0] if len(values) == 1 else values
