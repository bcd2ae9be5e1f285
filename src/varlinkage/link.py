from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np

logger = logging.getLogger(__name__)

# Minimum read count to trust a category.
VALID_READ = 3
VALID_FREQ = np.float32(0.01)
CONF_FREQ = np.float32(0.96)


class Linkage(str, Enum):
    """Physical relationship between two variants."""

    CIS = "cis"
    TRANS = "trans"
    SUPER = "super"
    SUB = "sub"
    CROSS = "cross"

    def __str__(self) -> str:
        return self.value


def _freq(num: int, den: int) -> np.float32:
    # 0/0 gives NaN, which fails every threshold comparison below.
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.float32(num) / np.float32(den)


@dataclass
class Link:
    """Read counts supporting two variants jointly or separately."""

    both: int = 0
    first: int = 0
    second: int = 0
    neither: int = 0

    def add(self, first_ok: bool, second_ok: bool) -> None:
        """Tally one read informative for both variants."""
        if first_ok and second_ok:
            self.both += 1
        elif first_ok:
            self.first += 1
        elif second_ok:
            self.second += 1
        else:
            self.neither += 1

    def __add__(self, other: "Link") -> "Link":
        if not isinstance(other, Link):
            return NotImplemented
        return Link(
            both=self.both + other.both,
            first=self.first + other.first,
            second=self.second + other.second,
            neither=self.neither + other.neither,
        )

    @property
    def either(self) -> int:
        """Reads supporting only one of the two variants."""
        return self.first + self.second

    @property
    def any_support(self) -> int:
        return self.both + self.either

    @property
    def minor(self) -> int:
        return min(self.first, self.second)

    @property
    def major(self) -> int:
        return max(self.first, self.second)

    @property
    def both_freq_any(self) -> np.float32:
        """Fraction of reads supporting both among reads supporting any."""
        return _freq(self.both, self.any_support)

    @property
    def minor_freq_any(self) -> np.float32:
        return _freq(self.minor, self.any_support)

    @property
    def major_freq_any(self) -> np.float32:
        return _freq(self.major, self.any_support)

    @property
    def minor_freq_both(self) -> np.float32:
        return _freq(self.minor, self.minor + self.both)

    @property
    def first_freq_any(self) -> np.float32:
        return _freq(self.first, self.any_support)

    @property
    def second_freq_any(self) -> np.float32:
        return _freq(self.second, self.any_support)

    def infer_linkage(self) -> Optional[Linkage]:
        """Infer linkage from the tally; None when no rule applies."""
        if (
            self.both >= VALID_READ
            and self.both_freq_any >= CONF_FREQ
            and self.major < VALID_READ
            and self.major_freq_any < VALID_FREQ
        ):
            return Linkage.CIS
        if (
            self.both < VALID_READ
            and self.both_freq_any < VALID_FREQ
            and self.minor >= VALID_READ
            and self.minor_freq_both >= CONF_FREQ
        ):
            return Linkage.TRANS
        if (
            self.both >= VALID_READ
            and self.first < VALID_READ
            and self.first_freq_any < VALID_FREQ
            and self.second >= VALID_READ
        ):
            return Linkage.SUB
        if (
            self.both >= VALID_READ
            and self.second < VALID_READ
            and self.second_freq_any < VALID_FREQ
            and self.first >= VALID_READ
        ):
            return Linkage.SUPER
        if (
            self.both >= VALID_READ
            and self.both_freq_any >= VALID_FREQ
            and self.minor >= VALID_READ
            and self.minor_freq_any >= VALID_FREQ
        ):
            return Linkage.CROSS
        return None

    def conclusion(self) -> str:
        linkage = self.infer_linkage()
        return linkage.value if linkage is not None else "undefined"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "both": self.both,
            "first": self.first,
            "second": self.second,
            "neither": self.neither,
            "conclusion": self.conclusion(),
        }

    def render(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def __str__(self) -> str:
        return self.render()
