"""
Combinator financial contracts.

Contracts are written as prefix expressions over ten combinators (`zero`,
`one`, `and`, `or`, `truncate`, `scale`, `give`, `then`, `get`, `anytime`).
This package verifies contract text, encodes it as the signed 64-bit
bytecode the ledger stores, and steps a holder through the choices a
contract leaves open to derive its payoff.
"""

from loguru import logger

from combinator_contracts.errors import (
    ContractError,
    DuplicateObservable,
    EmptyInput,
    ErrorKind,
    IncompleteStepThrough,
    InvalidAddress,
    InvalidDate,
    InvalidReset,
    InvalidScaleValue,
    InvalidStepThroughOption,
    MalformedStructure,
    NoContractSet,
    UnknownCombinator,
)
from combinator_contracts.evaluator import Evaluator, StepThroughState
from combinator_contracts.grammar import Combinator, date_to_unix, is_valid_scale_value, tokenize, unix_to_date_string
from combinator_contracts.horizons import CompiledContract, compile_contract
from combinator_contracts.models import (
    DeserializeResult,
    ObservableEntry,
    Option,
    StepThroughOptions,
    StepThroughType,
    StepThroughValue,
    VerificationError,
    VerificationResult,
)
from combinator_contracts.next_map import NextMap
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
from combinator_contracts.settings import EngineSettings, LogConfig
from combinator_contracts.time_slices import TimeRange, TimeSlice, TimeSlices
from combinator_contracts.verifier import normalize_contract, parse_contract, verify_contract

# Silent until an application calls `configure_logging`.
logger.disable("combinator_contracts")

__all__ = [
    "Combinator",
    "CompiledContract",
    "ContractError",
    "DeserializeResult",
    "DuplicateObservable",
    "EmptyInput",
    "EngineSettings",
    "ErrorKind",
    "Evaluator",
    "IncompleteStepThrough",
    "InvalidAddress",
    "InvalidDate",
    "InvalidReset",
    "InvalidScaleValue",
    "InvalidStepThroughOption",
    "LogConfig",
    "MalformedStructure",
    "NextMap",
    "NoContractSet",
    "ObservableEntry",
    "Option",
    "StepThroughOptions",
    "StepThroughState",
    "StepThroughType",
    "StepThroughValue",
    "TimeRange",
    "TimeSlice",
    "TimeSlices",
    "UnknownCombinator",
    "VerificationError",
    "VerificationResult",
    "compile_contract",
    "date_to_unix",
    "deserialize_acquisition_times",
    "deserialize_address",
    "deserialize_combinator_contract",
    "deserialize_name",
    "deserialize_obs_entries",
    "deserialize_or_choices",
    "is_valid_scale_value",
    "normalize_contract",
    "parse_contract",
    "serialize_address",
    "serialize_combinator_contract",
    "serialize_name",
    "tokenize",
    "unix_to_date_string",
    "verify_contract",
]
