# combinator_contracts/errors.py
from __future__ import annotations

from typing import ClassVar

from combinator_contracts._compat import Self, StrEnum


class ErrorKind(StrEnum):
    UNKNOWN_COMBINATOR = "unknown_combinator"
    MALFORMED_STRUCTURE = "malformed_structure"
    EMPTY_INPUT = "empty_input"
    INVALID_DATE = "invalid_date"
    INVALID_ADDRESS = "invalid_address"
    INVALID_SCALE_VALUE = "invalid_scale_value"
    DUPLICATE_OBSERVABLE = "duplicate_observable"
    INCOMPLETE_STEP_THROUGH = "incomplete_step_through"
    INVALID_RESET = "invalid_reset"
    INVALID_STEP_THROUGH_OPTION = "invalid_step_through_option"
    NO_CONTRACT_SET = "no_contract_set"


class ContractError(Exception):
    """Base class for every error raised by the contract-language engine."""

    kind: ClassVar[ErrorKind]

    def __init__(self, message: str, *, atom_index: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.atom_index = atom_index
        self.location_stack: list[str] = []

    def add_location(self, frame: str) -> Self:
        """Append an enclosing location frame; frames run innermost first."""
        self.location_stack.append(frame)
        return self

    def __str__(self) -> str:
        if not self.location_stack:
            return self.message
        return self.message + " " + " ".join(self.location_stack)


class UnknownCombinator(ContractError):
    """An atom (or bytecode) where a combinator keyword was expected is not one."""

    kind = ErrorKind.UNKNOWN_COMBINATOR


class MalformedStructure(ContractError):
    """A sub-combinator or parameter is missing, or the input ends early."""

    kind = ErrorKind.MALFORMED_STRUCTURE


class EmptyInput(MalformedStructure):
    kind = ErrorKind.EMPTY_INPUT


class InvalidDate(ContractError):
    kind = ErrorKind.INVALID_DATE


class InvalidAddress(ContractError):
    kind = ErrorKind.INVALID_ADDRESS


class InvalidScaleValue(ContractError):
    kind = ErrorKind.INVALID_SCALE_VALUE


class DuplicateObservable(ContractError):
    """The same (name, arbiter address) observable is declared twice."""

    kind = ErrorKind.DUPLICATE_OBSERVABLE


class IncompleteStepThrough(ContractError):
    """Evaluation was requested while step-through choices are still pending."""

    kind = ErrorKind.INCOMPLETE_STEP_THROUGH


class InvalidReset(ContractError):
    """A step-through reset targeted a value that has not been recorded or cannot be reset."""

    kind = ErrorKind.INVALID_RESET


class InvalidStepThroughOption(ContractError):
    """The supplied value is not one of the pending step-through options."""

    kind = ErrorKind.INVALID_STEP_THROUGH_OPTION


class NoContractSet(ContractError):
    kind = ErrorKind.NO_CONTRACT_SET


__all__ = [
    "ContractError",
    "DuplicateObservable",
    "EmptyInput",
    "ErrorKind",
    "IncompleteStepThrough",
    "InvalidAddress",
    "InvalidDate",
    "InvalidReset",
    "InvalidScaleValue",
    "InvalidStepThroughOption",
    "MalformedStructure",
    "NoContractSet",
    "UnknownCombinator",
]
