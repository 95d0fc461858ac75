"""Static promo code table."""

from __future__ import annotations

from typing import Mapping, Optional

from homestay.errors import DiscountNotFound, InvalidInputError

DEFAULT_DISCOUNT_CODES: dict[str, int] = {
    "WELCOME10": 10,
    "RURAL20": 20,
    "FIRSTTIME": 15,
}


class DiscountCodeTable:
    """Case-sensitive, exact-match lookup of promo code -> percent off.

    Codes never expire and have no usage limit.
    """

    def __init__(self, codes: Optional[Mapping[str, int]] = None) -> None:
        table = dict(DEFAULT_DISCOUNT_CODES if codes is None else codes)
        for code, percent in table.items():
            if isinstance(percent, bool) or not isinstance(percent, int) or not 0 < percent <= 100:
                raise InvalidInputError(
                    f"Discount code {code!r} must map to a percent in (0, 100], got {percent!r}"
                )
        self._codes = table

    def lookup(self, code: str) -> int:
        try:
            return self._codes[code]
        except KeyError:
            raise DiscountNotFound(code) from None

    def codes(self) -> list[str]:
        return sorted(self._codes)

    def __contains__(self, code: object) -> bool:
        return code in self._codes

    def __len__(self) -> int:
        return len(self._codes)
