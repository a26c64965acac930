"""
Key filtering for the directory relay.

Selects the entries of a parsed property file whose keys fully match the
configured pattern.
"""

import re
from typing import Dict, Mapping, Union

from relay.utils.exceptions import ConfigurationError

PatternLike = Union[str, re.Pattern]


class KeyFilter:
    """Full-match key filter compiled once and reused for every file."""

    def __init__(self, pattern: PatternLike):
        """
        Initialize key filter.

        Args:
            pattern: Regular expression source or compiled pattern

        Raises:
            ConfigurationError: If the pattern does not compile
        """
        if isinstance(pattern, re.Pattern):
            self.pattern = pattern
        else:
            try:
                self.pattern = re.compile(pattern)
            except re.error as e:
                raise ConfigurationError(f"Invalid key pattern {pattern!r}: {e}") from e

    def matches(self, key: str) -> bool:
        """Return True if the whole key matches the pattern."""
        return self.pattern.fullmatch(key) is not None

    def filter(self, properties: Mapping[str, str]) -> Dict[str, str]:
        """
        Return the entries whose keys fully match the pattern.

        Args:
            properties: Parsed key/value pairs

        Returns:
            New mapping with matching entries and their original values
        """
        return {key: value for key, value in properties.items() if self.matches(key)}

    def __repr__(self) -> str:
        return f"KeyFilter({self.pattern.pattern!r})"


def filter_properties(properties: Mapping[str, str], pattern: PatternLike) -> Dict[str, str]:
    """Filter ``properties`` by full key match against ``pattern``."""
    return KeyFilter(pattern).filter(properties)
