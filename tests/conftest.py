from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Union

import pytest
from eth_utils import to_checksum_address

from combinator_contracts.evaluator import Evaluator
from combinator_contracts.serialization import serialize_combinator_contract
from combinator_contracts.settings import EngineSettings

# 01/01/1970 00:16:40 UTC
NOW = 1000


@pytest.fixture
def now() -> int:
    return NOW


@pytest.fixture
def addresses() -> dict[str, str]:
    raw = {
        "a": "0x00112233445566778899aabbccddeeff00112233",
        "b": "0x" + "ab" * 20,
        "c": "0x" + "0c" * 20,
        "max": "0x" + "f" * 40,
    }
    return {key: to_checksum_address(value) for key, value in raw.items()}


@pytest.fixture
def make_evaluator() -> Callable[..., Evaluator]:
    def _make_evaluator(
        contract: str | None = None,
        *,
        now: int = NOW,
        settings: EngineSettings | None = None,
    ) -> Evaluator:
        evaluator = Evaluator(settings=settings, clock=lambda: now)
        if contract is not None:
            evaluator.set_contract(contract)
        return evaluator

    return _make_evaluator


class FakeLedger:
    """In-memory stand-in for a deployed contract."""

    def __init__(
        self,
        definition: Sequence[int],
        *,
        obs_entries: Sequence[int] = (),
        or_choices: Union[str, bytes] = "0x",
        acquisition_times: Sequence[int] = (),
    ) -> None:
        self.definition = list(definition)
        self.obs_entries = list(obs_entries)
        self.or_choices = or_choices
        self.acquisition_times = list(acquisition_times)
        self.calls: list[tuple[str, tuple]] = []

    def get_contract_definition(self) -> list[int]:
        return self.definition

    def get_obs_entries(self) -> list[int]:
        return self.obs_entries

    def get_or_choices(self) -> Union[str, bytes]:
        return self.or_choices

    def get_acquisition_times(self) -> list[int]:
        return self.acquisition_times

    def set_or_choice(self, index: int, choice: bool) -> None:
        self.calls.append(("set_or_choice", (index, choice)))

    def set_obs_value(self, index: int, value: int) -> None:
        self.calls.append(("set_obs_value", (index, value)))

    def acquire(self) -> None:
        self.calls.append(("acquire", ()))

    def acquire_anytime_sub_contract(self, index: int) -> None:
        self.calls.append(("acquire_anytime_sub_contract", (index,)))


@pytest.fixture
def make_ledger() -> Callable[..., FakeLedger]:
    def _make_ledger(contract: str, **kwargs) -> FakeLedger:
        return FakeLedger(serialize_combinator_contract(contract), **kwargs)

    return _make_ledger
