"""Ordered key/value options read from configuration sections."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field

_INT_RE = re.compile(r"\s*([+-]?\d+)")
_FLOAT_RE = re.compile(
    r"\s*([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)


def _atoi(text: str) -> int:
    match = _INT_RE.match(text)
    return int(match.group(1)) if match else 0


def _atof(text: str) -> float:
    match = _FLOAT_RE.match(text)
    return float(match.group(1)) if match else 0.0


@dataclass
class Option:
    """One ``key=value`` pair and whether it has been looked up."""

    key: str
    val: str | None
    used: bool = False


@dataclass
class OptionList:
    """Options in insertion order; lookups return the first match."""

    options: list[Option] = field(default_factory=list)

    def __iter__(self) -> Iterator[Option]:
        return iter(self.options)

    def __len__(self) -> int:
        return len(self.options)

    def read_option(self, s: str) -> bool:
        """Parse ``key=value`` and store it.

        A line whose only ``=`` is its last character is rejected; a line
        without ``=`` is stored as a key with no value.
        """
        split = s.find("=")
        position = len(s) if split < 0 else split
        if position == len(s) - 1:
            return False
        if split < 0:
            self.insert(s, None)
        else:
            self.insert(s[:split], s[split + 1 :])
        return True

    def insert(self, key: str, val: str | None) -> None:
        self.options.append(Option(key, val))

    def find(self, key: str) -> str | None:
        """Return the value of the first option named ``key`` and mark it used."""
        for option in self.options:
            if option.key == key:
                option.used = True
                return option.val
        return None

    def find_str(self, key: str, default: str | None) -> str | None:
        value = self.find(key)
        return default if value is None else value

    def find_int(self, key: str, default: int) -> int:
        """Look up an integer, parsed leniently from its leading digits."""
        value = self.find(key)
        return default if value is None else _atoi(value)

    def find_float(self, key: str, default: float) -> float:
        """Look up a float, parsed leniently from its leading number."""
        value = self.find(key)
        return default if value is None else _atof(value)

    def unused(self) -> list[Option]:
        """Options that were never looked up."""
        return [option for option in self.options if not option.used]