# combinator_contracts/adapters/ledger.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, Union

from loguru import logger

from combinator_contracts.errors import InvalidScaleValue
from combinator_contracts.grammar import is_valid_scale_value
from combinator_contracts.models import ObservableEntry, Option
from combinator_contracts.serialization import (
    deserialize_acquisition_times,
    deserialize_combinator_contract,
    deserialize_obs_entries,
    deserialize_or_choices,
)


class LedgerContract(Protocol):
    """The deployed contract's ledger-side interface. Calls may be remote; the core never makes them itself."""

    def get_contract_definition(self) -> Sequence[int]:
        ...

    def get_obs_entries(self) -> Sequence[int]:
        ...

    def get_or_choices(self) -> Union[str, bytes, Sequence[int]]:
        ...

    def get_acquisition_times(self) -> Sequence[int]:
        ...

    def set_or_choice(self, index: int, choice: bool) -> None:
        ...

    def set_obs_value(self, index: int, value: int) -> None:
        ...

    def acquire(self) -> None:
        ...

    def acquire_anytime_sub_contract(self, index: int) -> None:
        ...


@dataclass(frozen=True)
class LedgerSnapshot:
    contract: str
    observables: list[ObservableEntry]
    or_choices: list[Option[bool]]
    acquisition_times: list[Option[int]]

    @property
    def is_acquired(self) -> bool:
        return bool(self.acquisition_times) and self.acquisition_times[0].is_defined()

    def observable_values(self) -> dict[int, int]:
        """Values the arbiters have set so far, keyed by observable ordinal."""
        return {entry.index: entry.value.value for entry in self.observables if entry.value.is_defined()}


def read_ledger_snapshot(ledger: LedgerContract) -> LedgerSnapshot:
    """Read every raw array off the ledger and decode it."""
    definition = deserialize_combinator_contract(0, ledger.get_contract_definition())
    snapshot = LedgerSnapshot(
        contract=definition.contract,
        observables=deserialize_obs_entries(ledger.get_obs_entries()),
        or_choices=deserialize_or_choices(ledger.get_or_choices()),
        acquisition_times=deserialize_acquisition_times(ledger.get_acquisition_times()),
    )
    logger.debug(
        f"[Ledger] snapshot: {len(snapshot.observables)} observables, "
        f"{len(snapshot.or_choices)} or-choices, {len(snapshot.acquisition_times)} acquisition times"
    )
    return snapshot


def set_observable_value(ledger: LedgerContract, index: int, value: Union[int, str]) -> int:
    if not is_valid_scale_value(value):
        raise InvalidScaleValue(f"Observable value must be a signed 64-bit integer, found: '{value}'.")
    number = int(value)
    ledger.set_obs_value(index, number)
    logger.info(f"[Ledger] observable {index} set to {number}")
    return number
