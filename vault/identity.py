"""Match the importing user to one roster owner of a season."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class OwnerMatch:
    index: int
    owner_name: str


def _normalize(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def resolve_owner_match(
    display_name: Optional[str],
    owner_names: Sequence[Optional[str]],
) -> Optional[OwnerMatch]:
    """Return the first owner whose name contains, or is contained in, ``display_name``.

    Case-insensitive. Ambiguity is not detected: provider order decides.
    """
    needle = _normalize(display_name)
    if not needle:
        return None
    for index, owner_name in enumerate(owner_names):
        candidate = _normalize(owner_name)
        if not candidate:
            continue
        if needle in candidate or candidate in needle:
            return OwnerMatch(index=index, owner_name=owner_name or "")
    return None
