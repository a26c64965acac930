import re

import pytest

from domains.directory_relay.filters import KeyFilter, filter_properties
from relay.utils.exceptions import ConfigurationError


def test_filter_selects_fully_matching_keys():
    properties = {"user.name": "alice", "user.age": "30", "other.key": "skip"}

    assert filter_properties(properties, r"^user\..*$") == {"user.name": "alice", "user.age": "30"}


def test_filter_requires_full_match_not_search():
    key_filter = KeyFilter(r"user")
    properties = {"user": "1", "user.name": "2", "superuser": "3"}

    assert key_filter.filter(properties) == {"user": "1"}


def test_filter_keeps_values_untouched():
    properties = {"a": "  spaced  ", "b": "", "c": "EOF"}

    assert KeyFilter(".*").filter(properties) == properties


def test_filter_may_return_empty_mapping():
    assert KeyFilter(r"nomatch").filter({"a": "1"}) == {}


def test_filter_does_not_mutate_input():
    properties = {"keep": "1", "drop": "2"}

    KeyFilter("keep").filter(properties)

    assert properties == {"keep": "1", "drop": "2"}


def test_filter_accepts_compiled_pattern():
    pattern = re.compile(r"[a-z]+\d")

    assert KeyFilter(pattern).filter({"ab1": "x", "ab": "y", "ab12": "z"}) == {"ab1": "x"}


def test_result_contains_exactly_the_matching_keys():
    properties = {f"key{i}": str(i) for i in range(50)}
    key_filter = KeyFilter(r"key[0-9]*[05]")

    result = key_filter.filter(properties)

    assert set(result) == {key for key in properties if key_filter.pattern.fullmatch(key)}
    assert all(result[key] == properties[key] for key in result)


def test_invalid_pattern_raises_configuration_error():
    with pytest.raises(ConfigurationError):
        KeyFilter("user.(")
