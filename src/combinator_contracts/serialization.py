# combinator_contracts/serialization.py
"""
Translation between contract text and the flat signed 64-bit bytecode held by
the ledger-side runtime, plus decoders for the raw arrays the ledger returns
(acquisition times, or-choices, observable entries).
"""
from __future__ import annotations

from typing import Optional, Sequence, Union

from eth_utils import to_checksum_address
from loguru import logger

from combinator_contracts.errors import EmptyInput, MalformedStructure, UnknownCombinator
from combinator_contracts.grammar import (
    INT64_MAX,
    INT64_MIN,
    MAX_NESTING_DEPTH,
    SCALE_CONSTANT,
    SCALE_OBSERVABLE,
    UINT32_MAX,
    Combinator,
    ParameterKind,
    format_date_atom,
    format_observable,
    normalize_address,
    read_date,
    read_scale_parameter,
    tokenize,
)
from combinator_contracts.models import DeserializeResult, ObservableEntry, Option

ADDRESS_WORDS = 4
ADDRESS_BYTES = 20
ADDRESS_PADDING = 4
UNDEFINED = -1
UNICODE_MAX = 0x10FFFF
SURROGATES = (0xD800, 0xDFFF)


# ------------------------------------------------------------------------------
# Addresses and names
# ------------------------------------------------------------------------------


def serialize_address(address: str) -> list[int]:
    """Pack an address into a tag word plus three little-endian signed 64-bit words."""
    raw = bytes(ADDRESS_PADDING) + bytes.fromhex(normalize_address(address)[2:])
    words = [int.from_bytes(raw[k : k + 8], "little", signed=True) for k in range(0, len(raw), 8)]
    return [0, *words]


def deserialize_address(words: Sequence[int]) -> str:
    if len(words) < ADDRESS_WORDS:
        raise MalformedStructure(f"Expected {ADDRESS_WORDS} address words, found {len(words)}.")
    raw = b"".join(_to_int64(word).to_bytes(8, "little", signed=True) for word in words[1:ADDRESS_WORDS])
    return to_checksum_address("0x" + raw[ADDRESS_PADDING:].hex())


def serialize_name(name: str) -> list[int]:
    return [len(name), *(ord(c) for c in name)]


def deserialize_name(codes: Sequence[int], start: int = 0) -> str:
    """Decode character codes; `start` is the bytecode slot of the first code, used in errors."""
    chars = []
    for k, code in enumerate(codes):
        number = int(code)
        if number < 0 or number > UNICODE_MAX or SURROGATES[0] <= number <= SURROGATES[1]:
            raise MalformedStructure(
                f"Observable name code {number} is not a Unicode code point.", atom_index=start + k
            )
        chars.append(chr(number))
    return "".join(chars)


def _to_int64(value: Union[int, str]) -> int:
    number = int(value)
    if number > INT64_MAX:
        number -= 2**64
    if number < INT64_MIN:
        raise MalformedStructure(f"Bytecode word out of signed 64-bit range: {value}.")
    return number


# ------------------------------------------------------------------------------
# Contracts
# ------------------------------------------------------------------------------


def serialize_combinator_contract(contract: str) -> list[int]:
    """
    Encode contract text as bytecode in a single left-to-right scan.

    Each keyword emits its dictionary code; `truncate` adds its unix time;
    `scale` adds a discriminator followed by either the constant or the packed
    arbiter address and length-prefixed observable name.
    """
    atoms = tokenize(contract)
    result: list[int] = []

    i = 0
    while i < len(atoms):
        combinator = Combinator.from_atom(atoms[i])
        if combinator is None:
            raise UnknownCombinator(f"Combinator {atoms[i]} not recognized.", atom_index=i)
        result.append(combinator.code)

        if combinator.parameter is ParameterKind.DATE:
            time, i = read_date(atoms, i + 1)
            result.append(time)
        elif combinator.parameter is ParameterKind.SCALE:
            scale, i = read_scale_parameter(atoms, i + 1)
            if scale.observable is None:
                result.extend([SCALE_CONSTANT, scale.constant])
            else:
                result.append(SCALE_OBSERVABLE)
                result.extend(serialize_address(scale.observable.address))
                result.extend(serialize_name(scale.observable.name))
        i += 1

    logger.debug(f"[Serializer] {len(atoms)} atoms -> {len(result)} words")
    return result


def _word(serialized: Sequence[int], i: int) -> int:
    if i >= len(serialized):
        raise MalformedStructure(f"Serialized contract ended early at index {i}.", atom_index=i)
    return _to_int64(serialized[i])


def _deserialize(i: int, serialized: Sequence[int], depth: int = 0) -> DeserializeResult:
    if depth > MAX_NESTING_DEPTH:
        raise MalformedStructure(
            f"Serialized contract nests more than {MAX_NESTING_DEPTH} combinators deep.", atom_index=i
        )
    code = _word(serialized, i)
    combinator = Combinator.from_code(code)
    if combinator is None:
        raise UnknownCombinator(f"Unknown combinator code {code} found in contract definition.", atom_index=i)

    parts = [combinator.value]
    cursor = i

    if combinator.parameter is ParameterKind.DATE:
        time = _word(serialized, i + 1)
        if time < 0 or time > UINT32_MAX:
            raise MalformedStructure(f"Truncation time {time} is not an unsigned 32-bit value.", atom_index=i + 1)
        parts.append(format_date_atom(time))
        cursor = i + 1
    elif combinator.parameter is ParameterKind.SCALE:
        discriminator = _word(serialized, i + 1)
        if discriminator == SCALE_CONSTANT:
            parts.append(str(_word(serialized, i + 2)))
            cursor = i + 2
        elif discriminator == SCALE_OBSERVABLE:
            start = i + 2
            words = [_word(serialized, k) for k in range(start, start + ADDRESS_WORDS)]
            name_len = _word(serialized, start + ADDRESS_WORDS)
            if name_len < 0:
                raise MalformedStructure(f"Negative observable name length {name_len}.", atom_index=start + ADDRESS_WORDS)
            name_start = start + ADDRESS_WORDS + 1
            codes = [_word(serialized, k) for k in range(name_start, name_start + name_len)]
            parts.append(format_observable(deserialize_name(codes, name_start), deserialize_address(words)))
            cursor = name_start + name_len - 1
        else:
            raise MalformedStructure(f"Unknown scale discriminator {discriminator}.", atom_index=i + 1)

    for _ in range(combinator.arity):
        sub = _deserialize(cursor + 1, serialized, depth + 1)
        parts.append(sub.contract)
        cursor = sub.end_index

    return DeserializeResult(contract=" ".join(parts), end_index=cursor)


def deserialize_combinator_contract(i: int, serialized: Sequence[int]) -> DeserializeResult:
    """Rebuild contract text from bytecode starting at index `i`; `end_index` is the last consumed slot."""
    if not serialized:
        raise EmptyInput("Attempted to deserialize an empty combinator contract.")
    return _deserialize(i, serialized)


# ------------------------------------------------------------------------------
# Ledger outputs
# ------------------------------------------------------------------------------


def deserialize_acquisition_times(acquisition_times: Optional[Sequence[int]]) -> list[Option[int]]:
    return [Option.none() if int(t) == UNDEFINED else Option.some(int(t)) for t in acquisition_times or []]


def deserialize_or_choices(or_choices: Union[str, bytes, Sequence[int], None]) -> list[Option[bool]]:
    """Decode packed or-choices: byte 1 chooses the first branch, 0 the second, 2 or more is unset."""
    if not or_choices:
        return []
    if isinstance(or_choices, str):
        text = or_choices[2:] if or_choices.startswith("0x") else or_choices
        raw: Sequence[int] = bytes.fromhex(text)
    else:
        raw = or_choices
    return [Option.none() if byte >= 2 else Option.some(byte == 1) for byte in raw]


def deserialize_obs_entries(obs_entries: Optional[Sequence[int]]) -> list[ObservableEntry]:
    """
    Decode the ledger's observable entries. Each entry is four address words,
    then either `-1` (unset) or `0, value`, then a length-prefixed name.
    """
    entries: list[ObservableEntry] = []
    words = [_to_int64(w) for w in obs_entries or []]

    i = 0
    while i < len(words):
        address = deserialize_address(words[i : i + ADDRESS_WORDS])
        i += ADDRESS_WORDS

        flag = _word(words, i)
        if flag == UNDEFINED:
            value: Option[int] = Option.none()
            i += 1
        else:
            value = Option.some(_word(words, i + 1))
            i += 2

        name_len = _word(words, i)
        codes = words[i + 1 : i + 1 + name_len]
        if len(codes) != name_len:
            raise MalformedStructure("Observable entries ended inside a name.", atom_index=i)
        name = deserialize_name(codes, i + 1)
        i += 1 + name_len

        entries.append(ObservableEntry(address=address, value=value, name=name, index=len(entries)))

    return entries
