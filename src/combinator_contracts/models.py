# combinator_contracts/models.py
from __future__ import annotations

from dataclasses import dataclass
from functools import total_ordering
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from combinator_contracts._compat import StrEnum
from combinator_contracts.errors import ContractError, ErrorKind
from combinator_contracts.time_slices import TimeSlice

T = TypeVar("T")

# ------------------------------------------------------------------------------
# Shared BaseModel config helpers
# ------------------------------------------------------------------------------

_CONTRACT_CONFIG = ConfigDict(
    extra="forbid",
    validate_assignment=True,
    use_enum_values=False,
)

_IMMUTABLE_CONTRACT_CONFIG = ConfigDict(
    extra="forbid",
    use_enum_values=False,
    frozen=True,
)


# ------------------------------------------------------------------------------
# Option / observable entries
# ------------------------------------------------------------------------------


@total_ordering
@dataclass(frozen=True)
class Option(Generic[T]):
    """
    A value that may be explicitly absent (unacquired anytime, unset or-choice,
    unset observable). Undefined sorts after every defined value.
    """

    value: Optional[T] = None
    defined: bool = False

    @classmethod
    def some(cls, value: T) -> Option[T]:
        return cls(value=value, defined=True)

    @classmethod
    def none(cls) -> Option[T]:
        return cls()

    @classmethod
    def of(cls, value: Optional[T]) -> Option[T]:
        return cls() if value is None else cls.some(value)

    def is_defined(self) -> bool:
        return self.defined

    def get_value(self) -> Optional[T]:
        return self.value if self.defined else None

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Option):
            return NotImplemented
        if not self.defined:
            return False
        if not other.defined:
            return True
        return self.value < other.value  # type: ignore[operator]

    def __str__(self) -> str:
        return str(self.value) if self.defined else "None"


@dataclass(frozen=True)
class ObservableEntry:
    address: str
    value: Option[int]
    name: str
    index: int

    def is_duplicate_of(self, other: ObservableEntry) -> bool:
        return self.name == other.name and self.address.lower() == other.address.lower()


# ------------------------------------------------------------------------------
# Verification / deserialization outputs
# ------------------------------------------------------------------------------


class VerificationError(BaseModel):
    """
    A located verification failure. `location_stack` runs from the innermost
    failure outwards to the root combinator.
    """

    model_config = _CONTRACT_CONFIG

    message: str
    kind: ErrorKind = ErrorKind.MALFORMED_STRUCTURE
    atom_index: Optional[int] = None
    location_stack: list[str] = Field(default_factory=list)

    @classmethod
    def from_exception(cls, exc: ContractError) -> VerificationError:
        return cls(
            message=exc.message,
            kind=exc.kind,
            atom_index=exc.atom_index,
            location_stack=list(exc.location_stack),
        )

    def render(self) -> str:
        return "\n".join([self.message, *self.location_stack])


class VerificationResult(BaseModel):
    model_config = _CONTRACT_CONFIG

    end_index: Optional[int] = None
    error: Optional[VerificationError] = None
    warning: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.error is None


class DeserializeResult(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    contract: str
    end_index: int

    def get_contract(self) -> str:
        return self.contract

    def get_end_index(self) -> int:
        return self.end_index


# ------------------------------------------------------------------------------
# Step-through protocol
# ------------------------------------------------------------------------------


class StepThroughType(StrEnum):
    ACQUISITION_TIME = "acquisition-time"
    ANYTIME_ACQUISITION_TIME = "anytime-acquisition-time"
    GET_ACQUISITION_TIME = "get-acquisition-time"
    OR_CHOICE = "or-choice"


TIME_VALUE_TYPES = frozenset(
    {
        StepThroughType.ACQUISITION_TIME,
        StepThroughType.ANYTIME_ACQUISITION_TIME,
        StepThroughType.GET_ACQUISITION_TIME,
    }
)


class StepThroughOptions(BaseModel):
    """The legal values for the next unresolved input-reliant combinator."""

    model_config = _IMMUTABLE_CONTRACT_CONFIG

    type: StepThroughType
    options: list[Union[TimeSlice, bool]]
    combinator_index: int
    index: int = -1

    @field_validator("options", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> Any:
        if isinstance(value, tuple):
            return list(value)
        return value


class StepThroughValue(BaseModel):
    """A recorded step-through choice, tagged with its combinator and type."""

    model_config = _IMMUTABLE_CONTRACT_CONFIG

    type: StepThroughType
    value: Union[TimeSlice, bool]
    combinator_index: int
    index: int = -1
    set_automatically: bool = False

    @property
    def is_time(self) -> bool:
        return self.type in TIME_VALUE_TYPES
