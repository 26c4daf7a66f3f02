from __future__ import annotations

import pytest

from combinator_contracts.errors import InvalidAddress, InvalidDate, InvalidScaleValue, MalformedStructure
from combinator_contracts.grammar import (
    Combinator,
    ParameterKind,
    date_to_unix,
    format_date_atom,
    is_valid_address,
    is_valid_scale_value,
    normalize_address,
    read_date,
    read_scale_parameter,
    tokenize,
    unix_to_date_string,
)


def test_tokenize_drops_delimiters() -> None:
    assert tokenize("and(zero,  one)\n") == ["and", "zero", "one"]
    assert tokenize("") == []


def test_combinator_table() -> None:
    assert Combinator.from_atom("AnD") is Combinator.AND
    assert Combinator.from_atom("nope") is None
    assert [c.code for c in Combinator] == list(range(10))
    assert Combinator.from_code(9) is Combinator.ANYTIME
    assert Combinator.from_code(10) is None

    assert Combinator.ONE.arity == 0
    assert Combinator.GET.arity == 1
    assert Combinator.THEN.arity == 2
    assert Combinator.TRUNCATE.parameter is ParameterKind.DATE
    assert Combinator.SCALE.parameter is ParameterKind.SCALE
    assert Combinator.GIVE.parameter is ParameterKind.NONE


def test_dates_with_and_without_zone() -> None:
    assert date_to_unix("<01/01/1970 00:00:10>") == 10
    assert date_to_unix("01/01/1970 01:00:00 +0100") == 0
    assert unix_to_date_string(86400) == "02/01/1970 00:00:00"
    assert unix_to_date_string(0, with_zone=True) == "01/01/1970 00:00:00 +0000"
    assert format_date_atom(86400) == "<02/01/1970 00:00:00>"

    with pytest.raises(InvalidDate):
        date_to_unix("<31/02/1970 00:00:00>")


def test_read_date_reassembles_bracketed_atoms() -> None:
    atoms = tokenize("truncate <01/01/1970 00:00:10> one")

    assert read_date(atoms, 1) == (10, 2)
    assert read_date(["truncate", "42", "one"], 1) == (42, 1)


@pytest.mark.parametrize("raw", ["4294967296", "-1", "soon", "<01/01/1970"])
def test_read_date_rejects(raw: str) -> None:
    with pytest.raises(InvalidDate):
        read_date(["truncate", raw], 1)


def test_read_date_at_end_of_contract() -> None:
    with pytest.raises(MalformedStructure):
        read_date(["truncate"], 1)


def test_scale_value_range() -> None:
    assert is_valid_scale_value("9223372036854775807")
    assert is_valid_scale_value("-9223372036854775808")
    assert is_valid_scale_value(-5)
    assert not is_valid_scale_value("9223372036854775808")
    assert not is_valid_scale_value(True)
    assert not is_valid_scale_value("12a")


def test_addresses(addresses: dict[str, str]) -> None:
    upper = "0x" + addresses["b"][2:].upper()

    assert is_valid_address("<" + upper + ">")
    assert not is_valid_address("0x1234")
    assert normalize_address("<" + upper + ">") == addresses["b"]
    with pytest.raises(InvalidAddress):
        normalize_address("0xzz" + "0" * 38)


def test_read_scale_parameter(addresses: dict[str, str]) -> None:
    constant, end = read_scale_parameter(["scale", "-7", "one"], 1)
    assert (constant.constant, constant.is_observable, end) == (-7, False, 1)

    observable, end = read_scale_parameter(["scale", "price", addresses["a"], "one"], 1)
    assert observable.observable is not None
    assert (observable.observable.name, observable.observable.address, end) == ("price", addresses["a"], 2)

    with pytest.raises(InvalidScaleValue):
        read_scale_parameter(["scale", "99999999999999999999", "one"], 1)
    with pytest.raises(MalformedStructure):
        read_scale_parameter(["scale", "price"], 1)


def test_mixed_case_addresses_must_carry_a_valid_checksum() -> None:
    checksummed = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
    bad_checksum = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAeD"

    assert is_valid_address(checksummed)
    assert not is_valid_address(bad_checksum)
    with pytest.raises(InvalidAddress):
        normalize_address(f"<{bad_checksum}>", atom_index=3)
    assert normalize_address(checksummed.lower()) == checksummed
    assert normalize_address("0x" + checksummed[2:].upper()) == checksummed
