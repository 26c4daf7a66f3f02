from __future__ import annotations

import pytest

from combinator_contracts.errors import EmptyInput, InvalidDate, MalformedStructure, UnknownCombinator
from combinator_contracts.grammar import MAX_NESTING_DEPTH
from combinator_contracts.models import ObservableEntry, Option
from combinator_contracts.serialization import (
    deserialize_acquisition_times,
    deserialize_address,
    deserialize_combinator_contract,
    deserialize_name,
    deserialize_obs_entries,
    deserialize_or_choices,
    serialize_address,
    serialize_combinator_contract,
    serialize_name,
)
from combinator_contracts.verifier import normalize_contract


def test_serialize_simple_contract() -> None:
    assert serialize_combinator_contract("and zero one") == [2, 0, 1]
    assert serialize_combinator_contract("truncate 10 one") == [4, 10, 1]
    assert serialize_combinator_contract("scale -5 one") == [5, 1, -5, 1]
    assert serialize_combinator_contract("truncate <02/01/1970 00:00:00> one") == [4, 86400, 1]


def test_address_packing(addresses: dict[str, str]) -> None:
    assert serialize_address(addresses["max"]) == [0, -4294967296, -1, -1]

    words = serialize_address(addresses["a"])
    assert len(words) == 4
    assert deserialize_address(words) == addresses["a"]


def test_serialize_observable_scale(addresses: dict[str, str]) -> None:
    contract = f"scale obs <{addresses['max']}> one"
    bytecode = serialize_combinator_contract(contract)

    assert serialize_name("obs") == [3, 111, 98, 115]
    assert bytecode == [5, 0, 0, -4294967296, -1, -1, 3, 111, 98, 115, 1]

    result = deserialize_combinator_contract(0, bytecode)
    assert result.get_contract() == contract
    assert result.get_end_index() == len(bytecode) - 1


def test_deserialize_reports_last_consumed_slot() -> None:
    result = deserialize_combinator_contract(0, [2, 0, 1, 6, 1])

    assert result.contract == "and zero one"
    assert result.end_index == 2
    assert deserialize_combinator_contract(3, [2, 0, 1, 6, 1]).contract == "give one"


def test_round_trip_matches_normal_form(addresses: dict[str, str]) -> None:
    contract = (
        "AND (Truncate <02/01/1970 00:00:00 +0000> anytime one) "
        f"(then (scale 7 GIVE zero) (or get one scale Price <{addresses['b'].upper().replace('0X', '0x')}> one))"
    )

    bytecode = serialize_combinator_contract(contract)

    assert deserialize_combinator_contract(0, bytecode).contract == normalize_contract(contract)
    assert normalize_contract(contract) == (
        "and truncate <02/01/1970 00:00:00> anytime one "
        f"then scale 7 give zero or get one scale Price <{addresses['b']}> one"
    )


def test_serialize_errors() -> None:
    with pytest.raises(UnknownCombinator):
        serialize_combinator_contract("and foo one")
    with pytest.raises(InvalidDate):
        serialize_combinator_contract("truncate never one")


def test_deserialize_errors() -> None:
    with pytest.raises(EmptyInput):
        deserialize_combinator_contract(0, [])
    with pytest.raises(UnknownCombinator):
        deserialize_combinator_contract(0, [42])
    with pytest.raises(MalformedStructure):
        deserialize_combinator_contract(0, [2, 0])
    with pytest.raises(MalformedStructure):
        deserialize_combinator_contract(0, [5, 7, 1])


def test_deserialize_rejects_bad_name_codes(addresses: dict[str, str]) -> None:
    bytecode = [5, 0, *serialize_address(addresses["a"]), 1, -5, 1]
    with pytest.raises(MalformedStructure) as excinfo:
        deserialize_combinator_contract(0, bytecode)
    assert excinfo.value.atom_index == 7

    with pytest.raises(MalformedStructure):
        deserialize_name([104, 0x110000])
    with pytest.raises(MalformedStructure):
        deserialize_name([0xD800])
    with pytest.raises(MalformedStructure) as excinfo:
        deserialize_obs_entries(serialize_address(addresses["a"]) + [-1, 1, 0x110000])
    assert excinfo.value.atom_index == 6


def test_deserialize_nesting_depth_is_capped() -> None:
    nested = deserialize_combinator_contract(0, [6] * MAX_NESTING_DEPTH + [1])
    assert nested.contract == "give " * MAX_NESTING_DEPTH + "one"
    assert nested.end_index == MAX_NESTING_DEPTH

    with pytest.raises(MalformedStructure) as excinfo:
        deserialize_combinator_contract(0, [6] * 1200 + [1])
    assert excinfo.value.atom_index == MAX_NESTING_DEPTH + 1


def test_addresses_render_checksummed() -> None:
    checksummed = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
    words = serialize_address(checksummed.lower())

    assert deserialize_address(words) == checksummed
    assert deserialize_combinator_contract(0, [5, 0, *words, 1, 120, 1]).contract == f"scale x <{checksummed}> one"
    assert normalize_contract(f"scale x {checksummed.lower()} one") == f"scale x <{checksummed}> one"


def test_deserialize_acquisition_times() -> None:
    assert deserialize_acquisition_times([-1, 100]) == [Option.none(), Option.some(100)]
    assert deserialize_acquisition_times(None) == []


def test_undefined_option_has_no_value() -> None:
    assert Option.none().get_value() is None
    assert Option.some("None").get_value() == "None"
    assert str(Option.none()) == "None"
    assert str(Option.some(7)) == "7"


def test_deserialize_or_choices() -> None:
    assert deserialize_or_choices("0x010002") == [Option.some(True), Option.some(False), Option.none()]
    assert deserialize_or_choices(bytes([0, 5])) == [Option.some(False), Option.none()]
    assert deserialize_or_choices("0x") == []


def test_deserialize_obs_entries(addresses: dict[str, str]) -> None:
    words = (
        serialize_address(addresses["a"])
        + [-1]
        + serialize_name("x")
        + serialize_address(addresses["b"])
        + [0, 42]
        + serialize_name("yz")
    )

    assert deserialize_obs_entries(words) == [
        ObservableEntry(address=addresses["a"], value=Option.none(), name="x", index=0),
        ObservableEntry(address=addresses["b"], value=Option.some(42), name="yz", index=1),
    ]

    with pytest.raises(MalformedStructure):
        deserialize_obs_entries(words[:-1])
