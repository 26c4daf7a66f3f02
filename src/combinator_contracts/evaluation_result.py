# combinator_contracts/evaluation_result.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from combinator_contracts._compat import StrEnum
from combinator_contracts.time_slices import TimeSlice


class IntermediateType(StrEnum):
    PAYMENT = "payment"
    SCALE = "scale"
    OBSERVABLE = "observable"
    ADD = "add"


@dataclass(frozen=True)
class IntermediateResult:
    type: IntermediateType
    value: Union[int, str, None] = None
    acquisition_time: Optional[TimeSlice] = None


class StepThroughEvaluationResult:
    """
    Symbolic payoff built bottom-up as a stack of intermediate results.

    Payments are leaves; scale, observable and add entries apply to the
    entries beneath them. Observables stay symbolic because their values are
    only known once the arbiter sets them on the ledger.
    """

    def __init__(self, value: int, acquisition_time: Optional[TimeSlice] = None) -> None:
        self.stack: list[IntermediateResult] = [IntermediateResult(IntermediateType.PAYMENT, value, acquisition_time)]

    def multiply_by_scalar(self, scalar: int) -> None:
        self.stack.append(IntermediateResult(IntermediateType.SCALE, scalar))

    def add_observable(self, name: str, acquisition_time: Optional[TimeSlice] = None) -> None:
        self.stack.append(IntermediateResult(IntermediateType.OBSERVABLE, name, acquisition_time))

    def add(self, other: StepThroughEvaluationResult) -> None:
        self.stack = other.stack + self.stack
        self.stack.append(IntermediateResult(IntermediateType.ADD))

    def get_value(self, show_times: bool = False, unit: str = "Wei") -> str:
        rendered = _format(list(self.stack), 1, show_times, unit)
        return f"0 {unit}" if rendered is None else rendered


def _time_suffix(entry: IntermediateResult, show_times: bool) -> str:
    if not show_times or entry.acquisition_time is None:
        return ""
    return " <" + entry.acquisition_time.to_date_range_string() + ">"


def _format(stack: list[IntermediateResult], scalar: int, show_times: bool, unit: str) -> Optional[str]:
    """Consume entries from the top of `stack` down to a payment; `None` means a zero term."""
    entry = stack.pop()

    if entry.type is IntermediateType.PAYMENT:
        value = int(entry.value or 0) * scalar
        if value == 0:
            return None
        return f"{value} {unit}" + _time_suffix(entry, show_times)

    if entry.type is IntermediateType.SCALE:
        return _format(stack, scalar * int(entry.value or 0), show_times, unit)

    if entry.type is IntermediateType.OBSERVABLE:
        sub = _format(stack, scalar, show_times, unit)
        if sub is None:
            return None
        return f"{entry.value}{_time_suffix(entry, show_times)} * {sub}"

    if entry.type is IntermediateType.ADD:
        first = _format(stack, scalar, show_times, unit)
        second = _format(stack, scalar, show_times, unit)
        if first is None:
            return second
        if second is None:
            return first
        return f"({first} + {second})"

    raise ValueError(f"Unrecognised intermediate step-through evaluation result found: {entry.type}")
