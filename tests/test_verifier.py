from __future__ import annotations

import pytest

from combinator_contracts.errors import ErrorKind, MalformedStructure, UnknownCombinator
from combinator_contracts.grammar import MAX_NESTING_DEPTH, Combinator
from combinator_contracts.verifier import NO_CONTRACT_MESSAGE, normalize_contract, parse_contract, verify_contract


def test_missing_sub_combinator_is_located() -> None:
    result = verify_contract("and one")

    assert not result.is_valid
    assert result.error is not None
    assert result.error.kind is ErrorKind.MALFORMED_STRUCTURE
    assert result.error.atom_index == 2
    assert result.error.location_stack == [
        "At atom 2 of the contract.",
        "At: 'and', atom: 0 of the contract.",
    ]
    assert result.error.render().splitlines()[0] == "Expected combinator, found end of contract."


def test_empty_contract() -> None:
    for text in ("", "  ( , ) ", None):
        result = verify_contract(text)
        assert result.error is not None
        assert result.error.kind is ErrorKind.EMPTY_INPUT
        assert result.error.message == NO_CONTRACT_MESSAGE


def test_valid_contract_reports_end_index() -> None:
    result = verify_contract("or truncate 10 one give zero")

    assert result.is_valid
    assert result.end_index == 5
    assert result.warning is None


def test_extraneous_atoms_warn_but_verify() -> None:
    result = verify_contract("one zero")

    assert result.is_valid
    assert result.end_index == 0
    assert result.warning is not None
    assert "after atom 0" in result.warning


@pytest.mark.parametrize(
    ("contract", "kind", "atom_index"),
    [
        ("and one foo", ErrorKind.UNKNOWN_COMBINATOR, 2),
        ("truncate <99/99/1970 00:00:00> one", ErrorKind.INVALID_DATE, 1),
        ("truncate 4294967296 one", ErrorKind.INVALID_DATE, 1),
        ("truncate", ErrorKind.MALFORMED_STRUCTURE, 1),
        ("scale 9223372036854775808 one", ErrorKind.INVALID_SCALE_VALUE, 1),
        ("scale obs 0x1234 one", ErrorKind.INVALID_ADDRESS, 2),
    ],
)
def test_semantic_errors(contract: str, kind: ErrorKind, atom_index: int) -> None:
    result = verify_contract(contract)

    assert result.error is not None
    assert result.error.kind is kind
    assert result.error.atom_index == atom_index


def test_duplicate_observable_declarations(addresses: dict[str, str]) -> None:
    a, b = addresses["a"], addresses["b"]

    duplicate = verify_contract(f"and scale x {a} one scale x <{a.upper().replace('0X', '0x')}> one")
    assert duplicate.error is not None
    assert duplicate.error.kind is ErrorKind.DUPLICATE_OBSERVABLE
    assert duplicate.error.location_stack[-1] == "At: 'and', atom: 0 of the contract."

    assert verify_contract(f"and scale x {a} one scale x {b} one").is_valid
    assert verify_contract(f"and scale x {a} one scale y {a} one").is_valid


def test_parse_contract_raises_with_location() -> None:
    with pytest.raises(UnknownCombinator) as excinfo:
        parse_contract("give maybe")
    assert excinfo.value.location_stack[-1] == "At: 'give', atom: 0 of the contract."

    with pytest.raises(MalformedStructure):
        parse_contract("then one")


def test_tree_is_an_index_addressed_arena(addresses: dict[str, str]) -> None:
    tree = parse_contract(f"and scale obs {addresses['a']} one truncate 5 zero")

    assert [node.index for node in tree.walk()] == [0, 1, 4, 5, 7]
    assert tree.node(0).children == (1, 5)
    assert tree.node(1).observable is not None
    assert tree.node(5).date == 5
    assert tree.node(0).combinator is Combinator.AND
    assert tree.observables()[0][0] == 1


def test_normalize_contract(addresses: dict[str, str]) -> None:
    upper = "0x" + addresses["b"][2:].upper()

    assert normalize_contract(f"SCALE obs {upper} (ONE)") == f"scale obs <{addresses['b']}> one"
    assert normalize_contract("truncate 86400 one") == "truncate <02/01/1970 00:00:00> one"


def test_bad_address_checksum_is_rejected() -> None:
    result = verify_contract("scale obs 0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAeD one")

    assert result.error is not None
    assert result.error.kind is ErrorKind.INVALID_ADDRESS
    assert result.error.atom_index == 2


def test_nesting_depth_is_capped() -> None:
    assert verify_contract("give " * MAX_NESTING_DEPTH + "one").is_valid

    too_deep = verify_contract("give " * (MAX_NESTING_DEPTH + 1) + "one")
    assert too_deep.error is not None
    assert too_deep.error.kind is ErrorKind.MALFORMED_STRUCTURE
    assert too_deep.error.atom_index == MAX_NESTING_DEPTH + 1
    assert too_deep.error.location_stack[-1] == "At: 'give', atom: 0 of the contract."

    very_deep = verify_contract("give " * 1200 + "one")
    assert very_deep.error is not None
    assert very_deep.error.kind is ErrorKind.MALFORMED_STRUCTURE

    with pytest.raises(MalformedStructure):
        parse_contract("and " * 1200 + "one " * 1201)
