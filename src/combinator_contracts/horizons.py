# combinator_contracts/horizons.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from loguru import logger

from combinator_contracts.grammar import Combinator
from combinator_contracts.models import ObservableEntry, Option
from combinator_contracts.next_map import NextMap
from combinator_contracts.time_slices import Time, TimeSlices, max_horizon, min_horizon
from combinator_contracts.verifier import ContractTree, parse_contract


@dataclass
class _ProcessResult:
    horizon: Time
    time_slices: TimeSlices
    anytime_time_slices: list[tuple[int, TimeSlices]] = field(default_factory=list)


@dataclass(frozen=True)
class CompiledContract:
    """
    A parsed contract together with the horizon and time-slice data of every
    combinator. Built once per contract text and never mutated afterwards.
    """

    contract: str
    tree: ContractTree
    horizon: Time
    time_slices: TimeSlices
    anytime_time_slices: tuple[TimeSlices, ...]
    horizons: NextMap[Time]
    anytime_slices_by_index: dict[int, TimeSlices]
    anytime_indexes: dict[int, int]
    or_indexes: dict[int, int]
    observable_indexes: dict[int, int]
    observables: tuple[ObservableEntry, ...]

    def horizon_at(self, index: int) -> Time:
        """Horizon of the combinator at atom `index`."""
        return self.horizons.try_get_next_value(index)

    def get_time_slices(self) -> TimeSlices:
        return self.time_slices.clone()

    def get_anytime_time_slices(self) -> list[TimeSlices]:
        return [slices.clone() for slices in self.anytime_time_slices]


class _HorizonPass:
    def __init__(self, tree: ContractTree) -> None:
        self.tree = tree
        self.horizons: NextMap[Time] = NextMap()
        self.observable_indexes: dict[int, int] = {}
        self.observables: list[ObservableEntry] = []

    def process(self, i: int) -> _ProcessResult:
        node = self.tree.node(i)
        combinator = node.combinator

        if combinator in (Combinator.ZERO, Combinator.ONE):
            self.horizons.add(i, None)
            return _ProcessResult(None, TimeSlices())

        if combinator is Combinator.TRUNCATE:
            sub = self.process(node.children[0])
            final = min_horizon(node.date, sub.horizon)
            sub.time_slices.cut_tail(final)
            self.horizons.add(i, final)
            return _ProcessResult(final, sub.time_slices, sub.anytime_time_slices)

        if combinator is Combinator.SCALE:
            observable = node.observable
            if observable is not None:
                ordinal = len(self.observables)
                self.observable_indexes[i] = ordinal
                self.observables.append(
                    ObservableEntry(address=observable.address, value=Option.none(), name=observable.name, index=ordinal)
                )
            return self.process(node.children[0])

        if combinator is Combinator.GIVE:
            return self.process(node.children[0])

        if combinator is Combinator.GET:
            # Acquiring `get c` any time before H(c) acquires c at H(c), so the
            # moment of acquisition before the horizon makes no difference.
            sub = self.process(node.children[0])
            sub.time_slices.concat_head(sub.horizon)
            return sub

        if combinator is Combinator.ANYTIME:
            sub = self.process(node.children[0])
            sub.anytime_time_slices.insert(0, (i, sub.time_slices.clone()))
            return sub

        # and / or / then
        first = self.process(node.children[0])
        second = self.process(node.children[1])
        final = max_horizon(first.horizon, second.horizon)

        time_slices = first.time_slices
        if combinator is Combinator.THEN:
            time_slices.merge_after(second.time_slices)
        else:
            time_slices.merge(second.time_slices)

        self.horizons.add(i, final)
        return _ProcessResult(final, time_slices, first.anytime_time_slices + second.anytime_time_slices)


def compile_tree(contract: str, tree: ContractTree) -> CompiledContract:
    horizon_pass = _HorizonPass(tree)
    result = horizon_pass.process(tree.root)

    ors = [node.index for node in tree.walk() if node.combinator is Combinator.OR]
    compiled = CompiledContract(
        contract=contract,
        tree=tree,
        horizon=result.horizon,
        time_slices=result.time_slices,
        anytime_time_slices=tuple(slices for _, slices in result.anytime_time_slices),
        horizons=horizon_pass.horizons,
        anytime_slices_by_index=dict(result.anytime_time_slices),
        anytime_indexes={index: n for n, (index, _) in enumerate(result.anytime_time_slices)},
        or_indexes={index: n for n, index in enumerate(ors)},
        observable_indexes=dict(horizon_pass.observable_indexes),
        observables=tuple(horizon_pass.observables),
    )
    logger.debug(f"[Horizons] horizon={compiled.horizon} slices={compiled.time_slices!r}")
    return compiled


def compile_contract(contract: str) -> CompiledContract:
    """Parse contract text and compute its horizon and time-slice data."""
    return compile_tree(contract, parse_contract(contract))


def get_horizon(contract: str) -> Optional[int]:
    return compile_contract(contract).horizon
