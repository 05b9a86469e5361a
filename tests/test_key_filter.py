from __future__ import annotations

from redis_key_browser.ui.key_filter import filter_keys

_KEYS = ["user:1", "Session:AB", "user:2", "cache:USER:x", "jobs"]


def _is_subsequence(sub: list[str], full: list[str]) -> bool:
    it = iter(full)
    return all(item in it for item in sub)


def test_filter_empty_query_returns_all_keys_in_order() -> None:
    result = filter_keys(_KEYS, "")
    assert result == _KEYS
    assert result is not _KEYS


def test_filter_is_case_insensitive_substring_and_keeps_order() -> None:
    assert filter_keys(_KEYS, "USER") == ["user:1", "user:2", "cache:USER:x"]
    assert filter_keys(_KEYS, "session:ab") == ["Session:AB"]
    assert filter_keys(_KEYS, "r:") == ["user:1", "user:2", "cache:USER:x"]


def test_filter_result_is_an_ordered_subsequence_and_idempotent() -> None:
    for query in ("", "u", "user", ":", "x", "nothing", "S"):
        result = filter_keys(_KEYS, query)
        assert _is_subsequence(result, _KEYS)
        assert filter_keys(result, query) == result


def test_filter_empty_result_is_valid() -> None:
    assert filter_keys(_KEYS, "zzz") == []
    assert filter_keys([], "user") == []


def test_filter_matches_escaped_form_of_binary_keys() -> None:
    keys = ["bin:\udcff", "plain"]
    assert filter_keys(keys, "\\xFF") == ["bin:\udcff"]


def test_filter_matches_keys_as_they_are_listed() -> None:
    keys = ["multi\nline", "tab\tbed", "plain"]
    assert filter_keys(keys, "i\\nl") == ["multi\nline"]
    assert filter_keys(keys, "B\\tB") == ["tab\tbed"]
