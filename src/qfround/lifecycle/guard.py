"""Authorization guard — whitelist and admin checks. No side effects."""

from __future__ import annotations

from typing import Iterable, Optional

from qfround.errors import Unauthorized


def is_permitted(whitelist: Optional[Iterable[str]], address: str) -> bool:
    """An absent whitelist admits everyone."""
    if whitelist is None:
        return True
    return address in whitelist


def check_whitelist(whitelist: Optional[Iterable[str]], address: str) -> None:
    """Raise Unauthorized unless ``address`` may act under ``whitelist``."""
    if not is_permitted(whitelist, address):
        raise Unauthorized(f"Unauthorized: {address} is not whitelisted")


def check_admin(admin: str, address: str) -> None:
    if address != admin:
        raise Unauthorized(f"Unauthorized: {address} is not the round admin")
