from typing import Iterable, Optional

import bleach


def sanitize_input(value: Optional[str]) -> Optional[str]:
    """Sanitize a user-supplied string before it is stored.

    - Removes NULL bytes
    - Strips HTML tags using bleach.clean(..., strip=True)
    - Trims whitespace

    ``None`` passes through so optional fields stay unset.
    """
    if value is None:
        return None
    val = value.replace("\x00", "")
    val = bleach.clean(val, tags=set(), strip=True)
    return val.strip()


def sanitize_list(values: Optional[Iterable[str]]) -> Optional[list[str]]:
    if values is None:
        return None
    cleaned = [sanitize_input(v) for v in values]
    # drop entries that were nothing but markup
    return [v for v in cleaned if v]
