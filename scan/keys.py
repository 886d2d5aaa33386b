"""Group-key extraction for confirmed codes."""

from typing import Callable

from config import PRODUCT_KEY_SEPARATOR

KeyExtractor = Callable[[str], str]


def product_group_key(code: str, separator: str = PRODUCT_KEY_SEPARATOR) -> str:
    """Return the product part of a code: everything before the first separator.

    Codes without the separator form their own group.

    >>> product_group_key("ABC-001")
    'ABC'
    """
    return code.split(separator, 1)[0]
