# combinator_contracts/grammar.py
"""
Atoms and grammar of the combinator contract language.

A contract is a prefix-encoded stream of atoms: every combinator keyword is
followed by its inline parameters and then by its sub-combinators, so no
structural separators are needed. Parentheses and commas are accepted purely
as visual sugar and are discarded by the tokenizer together with whitespace.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Tuple

from eth_utils import is_address, to_checksum_address

from combinator_contracts._compat import UTC, StrEnum
from combinator_contracts.errors import InvalidAddress, InvalidDate, InvalidScaleValue, MalformedStructure

DELIMITERS = re.compile(r"[\s(),]+")
INTEGER_ATOM = re.compile(r"[+-]?\d+\Z")

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
UINT32_MAX = 2**32 - 1
MAX_NESTING_DEPTH = 256

DATE_STRING_FORMAT = "%d/%m/%Y %H:%M:%S %z"
DATE_STRING_NO_ZONE_FORMAT = "%d/%m/%Y %H:%M:%S"


class Combinator(StrEnum):
    ZERO = "zero"
    ONE = "one"
    AND = "and"
    OR = "or"
    TRUNCATE = "truncate"
    SCALE = "scale"
    GIVE = "give"
    THEN = "then"
    GET = "get"
    ANYTIME = "anytime"

    @property
    def code(self) -> int:
        return COMBINATOR_CODES[self]

    @property
    def arity(self) -> int:
        return COMBINATOR_ARITY[self]

    @property
    def parameter(self) -> "ParameterKind":
        return COMBINATOR_PARAMETERS.get(self, ParameterKind.NONE)

    @classmethod
    def from_atom(cls, atom: str) -> Optional["Combinator"]:
        try:
            return cls(atom.lower())
        except ValueError:
            return None

    @classmethod
    def from_code(cls, code: int) -> Optional["Combinator"]:
        return CODE_COMBINATORS.get(code)


class ParameterKind(StrEnum):
    NONE = "none"
    DATE = "date"
    SCALE = "scale"


# Shared with the ledger-side runtime; both sides must change together.
COMBINATOR_CODES: dict[Combinator, int] = {
    Combinator.ZERO: 0,
    Combinator.ONE: 1,
    Combinator.AND: 2,
    Combinator.OR: 3,
    Combinator.TRUNCATE: 4,
    Combinator.SCALE: 5,
    Combinator.GIVE: 6,
    Combinator.THEN: 7,
    Combinator.GET: 8,
    Combinator.ANYTIME: 9,
}
CODE_COMBINATORS: dict[int, Combinator] = {code: combinator for combinator, code in COMBINATOR_CODES.items()}

COMBINATOR_ARITY: dict[Combinator, int] = {
    Combinator.ZERO: 0,
    Combinator.ONE: 0,
    Combinator.GIVE: 1,
    Combinator.GET: 1,
    Combinator.ANYTIME: 1,
    Combinator.TRUNCATE: 1,
    Combinator.SCALE: 1,
    Combinator.AND: 2,
    Combinator.OR: 2,
    Combinator.THEN: 2,
}

COMBINATOR_PARAMETERS: dict[Combinator, ParameterKind] = {
    Combinator.TRUNCATE: ParameterKind.DATE,
    Combinator.SCALE: ParameterKind.SCALE,
}

INPUT_RELIANT = frozenset({Combinator.OR, Combinator.ANYTIME})

SCALE_OBSERVABLE = 0
SCALE_CONSTANT = 1


@dataclass(frozen=True)
class ObservableRef:
    name: str
    address: str


@dataclass(frozen=True)
class ScaleParameter:
    constant: Optional[int] = None
    observable: Optional[ObservableRef] = None

    @property
    def is_observable(self) -> bool:
        return self.observable is not None


def tokenize(contract: str) -> list[str]:
    """Split contract text into atoms, dropping delimiters and empty tokens."""
    return [atom for atom in DELIMITERS.split(contract or "") if atom]


def is_integer_atom(atom: str) -> bool:
    return bool(INTEGER_ATOM.match(atom.strip()))


def is_valid_scale_value(value: object) -> bool:
    """True if the value is (or spells) an integer within the signed 64-bit range."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and is_integer_atom(value):
        number = int(value)
    else:
        return False
    return INT64_MIN <= number <= INT64_MAX


def strip_brackets(atom: str) -> str:
    if atom.startswith("<") and atom.endswith(">"):
        return atom[1:-1]
    return atom


def is_valid_address(address: str) -> bool:
    """Single-case hex addresses are accepted as is; mixed case must carry a valid EIP-55 checksum."""
    return is_address(strip_brackets(address))


def normalize_address(address: str, *, atom_index: Optional[int] = None) -> str:
    """Return the EIP-55 checksummed `0x` address, accepting a bracket-wrapped form."""
    raw = strip_brackets(address)
    if not is_address(raw):
        raise InvalidAddress(f"Expected a valid address, found: '{address}'.", atom_index=atom_index)
    return to_checksum_address(raw)


def date_to_unix(date: str, *, atom_index: Optional[int] = None) -> int:
    """Convert a pretty date (optionally bracketed, zone optional and UTC by default) to unix seconds."""
    text = " ".join(strip_brackets(date.strip()).split())
    for fmt in (DATE_STRING_FORMAT, DATE_STRING_NO_ZONE_FORMAT):
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return int(parsed.timestamp())
    raise InvalidDate(f"Expected a valid date, found: '{date}'.", atom_index=atom_index)


def unix_to_date_string(timestamp: int, *, with_zone: bool = False) -> str:
    moment = datetime.fromtimestamp(timestamp, tz=UTC)
    return moment.strftime(DATE_STRING_FORMAT if with_zone else DATE_STRING_NO_ZONE_FORMAT)


def format_date_atom(timestamp: int) -> str:
    return "<" + unix_to_date_string(timestamp) + ">"


def format_observable(name: str, address: str) -> str:
    return f"{name} <{address}>"


def _check_timestamp(value: int, raw: str, atom_index: int) -> int:
    if value < 0 or value > UINT32_MAX:
        raise InvalidDate(f"Expected unsigned 32-bit unix timestamp, found: '{raw}'.", atom_index=atom_index)
    return value


def read_date(atoms: Sequence[str], i: int) -> Tuple[int, int]:
    """
    Read the date parameter starting at atom `i`.

    Returns `(unix_time, last_atom_index)`. The bracket form spans several
    atoms once split on whitespace and is reassembled before parsing.
    """
    if i >= len(atoms):
        raise MalformedStructure("Expected a unix timestamp, found end of contract.", atom_index=i)

    atom = atoms[i]
    if atom.startswith("<"):
        close = next((j for j in range(i, len(atoms)) if atoms[j].endswith(">")), None)
        if close is None:
            raise InvalidDate(f"Expected a closing '>' for date starting at: '{atom}'.", atom_index=i)
        raw = " ".join(atoms[i : close + 1])
        return _check_timestamp(date_to_unix(raw, atom_index=i), raw, i), close

    if not is_integer_atom(atom):
        raise InvalidDate(f"Expected a valid unix timestamp, found: '{atom}'.", atom_index=i)
    return _check_timestamp(int(atom), atom, i), i


def read_scale_parameter(atoms: Sequence[str], i: int) -> Tuple[ScaleParameter, int]:
    """Read either a signed 64-bit constant or an observable `name address` pair starting at atom `i`."""
    if i >= len(atoms):
        raise MalformedStructure("Expected observable or scale value, found end of contract.", atom_index=i)

    atom = atoms[i]
    if is_integer_atom(atom):
        if not is_valid_scale_value(atom):
            raise InvalidScaleValue(f"Expected signed 64-bit scale value, found: '{atom}'.", atom_index=i)
        return ScaleParameter(constant=int(atom)), i

    if i + 1 >= len(atoms):
        raise MalformedStructure("Expected observable arbiter address, found end of contract.", atom_index=i + 1)
    address = normalize_address(atoms[i + 1], atom_index=i + 1)
    return ScaleParameter(observable=ObservableRef(name=atom, address=address)), i + 1


def location_frame(atoms: Sequence[str], index: int) -> str:
    if index < len(atoms):
        return f"At: '{atoms[index]}', atom: {index} of the contract."
    return f"At atom {index} of the contract."
