# tests/test_cache_keys.py

import itertools

import pytest

from utils.cache_keys import derive_key, normalize_symbols


def test_derive_key_matches_documented_format():
    assert derive_key("quotes", ["AAPL", "MSFT"]) == "quotes:AAPL,MSFT"


def test_derive_key_is_order_independent():
    symbols = ["MSFT", "AAPL", "NVDA"]
    keys = {derive_key("quotes", list(p)) for p in itertools.permutations(symbols)}
    assert keys == {"quotes:AAPL,MSFT,NVDA"}


def test_empty_parameters_stay_distinct_per_type():
    assert derive_key("sectors") == "sectors:"
    assert derive_key("sectors", []) == "sectors:"
    assert derive_key("quotes", []) != derive_key("sectors", [])


def test_string_parameter_is_not_split_into_characters():
    assert derive_key("history", "AAPL") == "history:AAPL"


def test_mapping_parameters_sorted_by_name():
    first = derive_key("history", {"symbol": "AAPL", "period": "1y"})
    second = derive_key("history", {"period": "1y", "symbol": "AAPL"})
    assert first == second == "history:period=1y,symbol=AAPL"


def test_type_tag_is_required():
    with pytest.raises(ValueError):
        derive_key("", ["AAPL"])
    with pytest.raises(ValueError):
        derive_key(None, ["AAPL"])


def test_normalize_symbols():
    assert normalize_symbols(" aapl, msft ,,AAPL") == ["AAPL", "MSFT"]
    assert normalize_symbols(["tsla", None, " ", "Tsla"]) == ["TSLA"]
    assert normalize_symbols(None) == []
    assert normalize_symbols("") == []


def test_separators_inside_parameters_do_not_collide():
    joined = derive_key("quotes", ["AAPL,MSFT"])
    assert joined != derive_key("quotes", ["AAPL", "MSFT"])
    assert joined == "quotes:AAPL\\,MSFT"
    assert derive_key("history", {"symbol": "A=B"}) != derive_key("history", {"symbol=A": "B"})


def test_normalize_symbols_splits_comma_list_items():
    assert normalize_symbols(["aapl,msft", "MSFT", "nvda"]) == ["AAPL", "MSFT", "NVDA"]
