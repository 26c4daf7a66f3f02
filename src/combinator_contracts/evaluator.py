# combinator_contracts/evaluator.py
"""
Step-through evaluation of a combinator contract.

An `Evaluator` session holds one immutable `CompiledContract` and the list of
choices the user has made so far. Every protocol call replays those choices
over the contract tree from the root: the walk resolves what it can on its
own (expired `or` branches, single-slice `anytime`s, the forced acquisition
of a `get`) and stops at the first input-reliant combinator with no recorded
choice. Resetting a choice is therefore just truncating the list and
replaying.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Mapping, Optional, Sequence, Union

from loguru import logger

from combinator_contracts._compat import UTC
from combinator_contracts.errors import (
    IncompleteStepThrough,
    InvalidReset,
    InvalidStepThroughOption,
    NoContractSet,
)
from combinator_contracts.evaluation_result import StepThroughEvaluationResult
from combinator_contracts.grammar import Combinator
from combinator_contracts.horizons import CompiledContract, compile_contract
from combinator_contracts.models import (
    TIME_VALUE_TYPES,
    ObservableEntry,
    StepThroughOptions,
    StepThroughType,
    StepThroughValue,
)
from combinator_contracts.settings import EngineSettings
from combinator_contracts.time_slices import TimeSlice, TimeSlices, later_than

Clock = Callable[[], int]
ChoiceValue = Union[TimeSlice, bool, int]

# Combinator index recorded against the top-level acquisition time.
TOP_LEVEL_INDEX = -1


def wall_clock() -> int:
    return int(datetime.now(UTC).timestamp())


def top_level_options(compiled: CompiledContract, now: int, include_past: bool) -> list[TimeSlice]:
    """
    Acquisition-time options for the whole contract: its time slices (from
    `now` unless `include_past`), plus a trailing slice after the horizon, or
    from `now` once the horizon has passed.
    """
    slices = compiled.time_slices
    options = slices.get_slices() if include_past else slices.get_valid_slices(now)
    horizon = compiled.horizon

    if not include_past and later_than(now, horizon):
        options.append(TimeSlice(now, None))
    elif horizon is not None:
        options.append(TimeSlice(horizon + 1, None))
    return options


@dataclass
class StepThroughState:
    """Values recorded by one replay, and the options it stopped at if any."""

    values: list[StepThroughValue] = field(default_factory=list)
    pending: Optional[StepThroughOptions] = None
    result: Optional[StepThroughEvaluationResult] = None

    @property
    def cursor(self) -> int:
        return len(self.values)

    @property
    def is_complete(self) -> bool:
        return self.pending is None


class _PendingChoice(Exception):
    def __init__(self, options: StepThroughOptions) -> None:
        super().__init__(options.type)
        self.options = options


class _Replay:
    def __init__(
        self,
        compiled: CompiledContract,
        choices: Sequence[StepThroughValue],
        *,
        now: int,
        include_past: bool,
        observable_values: Optional[Mapping[int, int]] = None,
    ) -> None:
        self.compiled = compiled
        self.choices = deque(choices)
        self.now = now
        self.include_past = include_past
        self.observable_values = dict(observable_values or {})
        self.values: list[StepThroughValue] = []

    def run(self) -> StepThroughState:
        try:
            time = self._decide(
                StepThroughType.ACQUISITION_TIME,
                TOP_LEVEL_INDEX,
                -1,
                top_level_options(self.compiled, self.now, self.include_past),
            )
            result = self._visit(self.compiled.tree.root, time)
        except _PendingChoice as pending:
            return StepThroughState(values=self.values, pending=pending.options)
        return StepThroughState(values=self.values, result=result)

    def _decide(
        self,
        type: StepThroughType,
        combinator_index: int,
        index: int,
        options: list,
        automatic: Union[TimeSlice, bool, None] = None,
    ):
        if automatic is not None:
            self.values.append(
                StepThroughValue(
                    type=type,
                    value=automatic,
                    combinator_index=combinator_index,
                    index=index,
                    set_automatically=True,
                )
            )
            return automatic

        if self.choices:
            choice = self.choices.popleft()
            if choice.type != type or choice.combinator_index != combinator_index:
                raise InvalidStepThroughOption(
                    f"Recorded {choice.type} for combinator {choice.combinator_index} does not match "
                    f"the pending {type} for combinator {combinator_index}."
                )
            self.values.append(choice)
            return choice.value

        raise _PendingChoice(
            StepThroughOptions(type=type, options=options, combinator_index=combinator_index, index=index)
        )

    def _visit(self, i: int, time: TimeSlice) -> StepThroughEvaluationResult:
        compiled = self.compiled
        node = compiled.tree.node(i)

        # Acquired after its horizon: worth nothing.
        if later_than(time.start, compiled.horizon_at(i)):
            return StepThroughEvaluationResult(0, time)

        combinator = node.combinator
        if combinator is Combinator.ZERO:
            return StepThroughEvaluationResult(0, time)
        if combinator is Combinator.ONE:
            return StepThroughEvaluationResult(1, time)

        if combinator is Combinator.GIVE:
            result = self._visit(node.children[0], time)
            result.multiply_by_scalar(-1)
            return result

        if combinator is Combinator.TRUNCATE:
            return self._visit(node.children[0], time)

        if combinator is Combinator.SCALE:
            result = self._visit(node.children[0], time)
            observable = node.observable
            if observable is None:
                result.multiply_by_scalar(node.scale.constant)
            else:
                ordinal = compiled.observable_indexes[i]
                if ordinal in self.observable_values:
                    result.multiply_by_scalar(self.observable_values[ordinal])
                else:
                    result.add_observable(observable.name, time)
            return result

        if combinator is Combinator.GET:
            horizon = compiled.horizon_at(i)
            if horizon is None:
                return StepThroughEvaluationResult(0, time)
            at_horizon = TimeSlice(horizon, horizon)
            acquired = self._decide(StepThroughType.GET_ACQUISITION_TIME, i, -1, [at_horizon], at_horizon)
            return self._visit(node.children[0], acquired)

        if combinator is Combinator.ANYTIME:
            options = compiled.anytime_slices_by_index[i].get_valid_slices(time.start)
            automatic: Optional[TimeSlice] = None
            if not options:
                automatic = time
            elif len(options) == 1:
                automatic = options[0]
            acquired = self._decide(
                StepThroughType.ANYTIME_ACQUISITION_TIME,
                i,
                compiled.anytime_indexes[i],
                options,
                automatic,
            )
            return self._visit(node.children[0], acquired)

        first, second = node.children

        if combinator is Combinator.AND:
            result = self._visit(first, time)
            result.add(self._visit(second, time))
            return result

        if combinator is Combinator.THEN:
            if later_than(time.start, compiled.horizon_at(first)):
                return self._visit(second, time)
            return self._visit(first, time)

        # or: a branch that has already expired is never worth choosing
        choice: Optional[bool] = None
        if later_than(time.start, compiled.horizon_at(first)):
            choice = False
        elif later_than(time.start, compiled.horizon_at(second)):
            choice = True
        chosen = self._decide(StepThroughType.OR_CHOICE, i, compiled.or_indexes[i], [True, False], choice)
        return self._visit(first if chosen else second, time)


class Evaluator:
    """
    A step-through evaluation session over one contract.

    Not safe for concurrent use; give each evaluation its own instance.
    """

    def __init__(self, settings: Optional[EngineSettings] = None, clock: Optional[Clock] = None) -> None:
        self.settings = settings or EngineSettings()
        self.clock = clock or wall_clock
        self._compiled: Optional[CompiledContract] = None
        self._choices: list[StepThroughValue] = []

    # ------------------------------------------------------------------
    # Contract data
    # ------------------------------------------------------------------

    @property
    def compiled(self) -> CompiledContract:
        if self._compiled is None:
            raise NoContractSet("Can't evaluate with no defined contract.")
        return self._compiled

    def set_contract(self, contract: str) -> None:
        """Compile `contract` and start a fresh step-through, discarding any prior choices."""
        compiled = compile_contract(contract)
        self._compiled = compiled
        self._choices = []
        logger.info(
            f"[Evaluator] contract set: horizon={compiled.horizon} "
            f"slices={len(compiled.time_slices)} observables={len(compiled.observables)}"
        )

    def get_contract(self) -> str:
        return self.compiled.contract

    def get_horizon(self) -> Optional[int]:
        return self.compiled.horizon

    def get_time_slices(self) -> TimeSlices:
        return self.compiled.get_time_slices()

    def get_anytime_time_slices(self) -> list[TimeSlices]:
        return self.compiled.get_anytime_time_slices()

    def get_observables(self) -> list[ObservableEntry]:
        return list(self.compiled.observables)

    # ------------------------------------------------------------------
    # Step-through protocol
    # ------------------------------------------------------------------

    def has_next_step(self) -> bool:
        return not self._replay().is_complete

    def get_prev_values(self) -> list[StepThroughValue]:
        """Every value recorded so far, automatic ones included, in resolution order."""
        return list(self._replay().values)

    def get_next_step_through_options(self, include_past: Optional[bool] = None) -> Optional[StepThroughOptions]:
        """Options for the next pending choice, or `None` once the step-through is complete."""
        state = self._replay(include_past=include_past)
        return state.pending

    def set_step_through_option(self, value: ChoiceValue) -> bool:
        """Record `value` for the pending choice. Returns whether further choices remain."""
        pending = self._replay().pending
        if pending is None:
            raise InvalidStepThroughOption("There is no pending step-through option to set.")

        choice = StepThroughValue(
            type=pending.type,
            value=self._coerce(pending, value),
            combinator_index=pending.combinator_index,
            index=pending.index,
        )
        self._choices.append(choice)
        state = self._replay()
        logger.debug(f"[Evaluator] recorded {choice.type} for combinator {choice.combinator_index}: {choice.value}")
        if state.is_complete:
            logger.info(f"[Evaluator] step-through complete after {state.cursor} values")
        return not state.is_complete

    def reset_step_through_option(self, value: ChoiceValue, index: int) -> bool:
        """Replace the recorded value at position `index`, dropping every value after it."""
        state = self._replay()
        if index < 0 or index > state.cursor:
            raise InvalidReset(f"Tried to reset step-through value {index}, only {state.cursor} have been set.")
        if index == state.cursor and state.is_complete:
            raise InvalidReset(f"There is no step-through value {index} to reset.")
        if index < state.cursor and state.values[index].set_automatically:
            raise InvalidReset(f"Step-through value {index} was set automatically and cannot be reset.")

        self._truncate(state.values[:index])
        logger.debug(f"[Evaluator] reset step-through value {index}")
        return self.set_step_through_option(value)

    def delete_step_through_option(self, combinator_index: int) -> None:
        """Forget the value recorded for `combinator_index` and every value after it."""
        state = self._replay()
        position = next(
            (k for k, value in enumerate(state.values) if value.combinator_index == combinator_index),
            None,
        )
        if position is None:
            raise InvalidReset(f"Tried to reset a step-through option which does not exist: {combinator_index}.")
        if state.values[position].set_automatically:
            raise InvalidReset(f"Step-through option for combinator {combinator_index} was set automatically.")

        self._truncate(state.values[:position])
        logger.debug(f"[Evaluator] deleted step-through option for combinator {combinator_index}")

    def evaluate(self, show_times: bool = False, observable_values: Optional[Mapping[int, int]] = None) -> str:
        """
        Render the payoff of the fully stepped-through contract.

        `observable_values` maps observable ordinals (declaration order) to
        values known so far; those observables are multiplied in as constants.
        """
        state = self._replay(observable_values=observable_values)
        if not state.is_complete or state.result is None:
            raise IncompleteStepThrough("Can't evaluate until every step-through option has been set.")
        return state.result.get_value(show_times=show_times, unit=self.settings.value_unit)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _replay(
        self,
        include_past: Optional[bool] = None,
        observable_values: Optional[Mapping[int, int]] = None,
    ) -> StepThroughState:
        replay = _Replay(
            self.compiled,
            self._choices,
            now=self.clock(),
            include_past=self.settings.include_past_options if include_past is None else include_past,
            observable_values=observable_values,
        )
        return replay.run()

    def _truncate(self, kept: Sequence[StepThroughValue]) -> None:
        self._choices = [value for value in kept if not value.set_automatically]

    def _coerce(self, pending: StepThroughOptions, value: ChoiceValue) -> Union[TimeSlice, bool]:
        if pending.type not in TIME_VALUE_TYPES:
            if not isinstance(value, bool):
                raise InvalidStepThroughOption(f"Expected an or-choice (True/False), found: {value!r}.")
            return value

        if isinstance(value, bool):
            raise InvalidStepThroughOption(f"Expected an acquisition time, found: {value!r}.")

        options = self._time_options(pending)
        if isinstance(value, int):
            found = next((option for option in options if option.includes(value)), None)
            if found is None:
                raise InvalidStepThroughOption(f"Acquisition time {value} is not within any option.")
            return found

        if value not in options:
            raise InvalidStepThroughOption(f"Time slice {value} is not one of the options.")
        return value

    def _time_options(self, pending: StepThroughOptions) -> list[TimeSlice]:
        options = [option for option in pending.options if isinstance(option, TimeSlice)]
        # Any slice of the contract is a legal top-level acquisition, past or not.
        if pending.type == StepThroughType.ACQUISITION_TIME:
            options.extend(top_level_options(self.compiled, self.clock(), include_past=True))
        return options
