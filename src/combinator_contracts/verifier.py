# combinator_contracts/verifier.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

from loguru import logger

from combinator_contracts.errors import (
    ContractError,
    DuplicateObservable,
    EmptyInput,
    MalformedStructure,
    UnknownCombinator,
)
from combinator_contracts.grammar import (
    MAX_NESTING_DEPTH,
    Combinator,
    ObservableRef,
    ParameterKind,
    ScaleParameter,
    format_date_atom,
    format_observable,
    location_frame,
    read_date,
    read_scale_parameter,
    tokenize,
)
from combinator_contracts.models import VerificationError, VerificationResult

NO_CONTRACT_MESSAGE = "No contract given! Please input a combinator contract."


@dataclass(frozen=True)
class CombinatorNode:
    """One combinator of a parsed contract, addressed by its atom index."""

    index: int
    combinator: Combinator
    children: tuple[int, ...]
    end: int
    date: Optional[int] = None
    scale: Optional[ScaleParameter] = None

    @property
    def observable(self) -> Optional[ObservableRef]:
        return self.scale.observable if self.scale is not None else None


@dataclass(frozen=True)
class ContractTree:
    """Arena of combinator nodes keyed by atom index, in left-to-right order."""

    atoms: tuple[str, ...]
    nodes: dict[int, CombinatorNode] = field(default_factory=dict)
    root: int = 0

    @property
    def end_index(self) -> int:
        return self.nodes[self.root].end

    @property
    def extraneous_atoms(self) -> tuple[str, ...]:
        return self.atoms[self.end_index + 1 :]

    def node(self, index: int) -> CombinatorNode:
        return self.nodes[index]

    def walk(self, index: Optional[int] = None) -> Iterator[CombinatorNode]:
        """Pre-order traversal, which is also the atom order."""
        stack = [self.root if index is None else index]
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def observables(self) -> list[tuple[int, ObservableRef]]:
        return [(node.index, node.observable) for node in self.walk() if node.observable is not None]

    def render(self, index: Optional[int] = None) -> str:
        node = self.nodes[self.root if index is None else index]
        parts = [node.combinator.value]
        if node.date is not None:
            parts.append(format_date_atom(node.date))
        if node.scale is not None:
            if node.scale.observable is not None:
                parts.append(format_observable(node.scale.observable.name, node.scale.observable.address))
            else:
                parts.append(str(node.scale.constant))
        parts.extend(self.render(child) for child in node.children)
        return " ".join(parts)


class _Parser:
    def __init__(self, atoms: Sequence[str]) -> None:
        self.atoms = tuple(atoms)
        self.nodes: dict[int, CombinatorNode] = {}
        self.seen_observables: set[tuple[str, str]] = set()

    def parse(self, i: int, depth: int = 0) -> CombinatorNode:
        atoms = self.atoms
        if depth > MAX_NESTING_DEPTH:
            raise MalformedStructure(
                f"Contract nests more than {MAX_NESTING_DEPTH} combinators deep.", atom_index=i
            ).add_location(location_frame(atoms, i))
        if i >= len(atoms):
            raise MalformedStructure("Expected combinator, found end of contract.", atom_index=i).add_location(
                location_frame(atoms, i)
            )

        combinator = Combinator.from_atom(atoms[i])
        if combinator is None:
            raise UnknownCombinator(f"Expected combinator, found: '{atoms[i]}'.", atom_index=i).add_location(
                location_frame(atoms, i)
            )

        try:
            cursor = i
            date: Optional[int] = None
            scale: Optional[ScaleParameter] = None

            if combinator.parameter is ParameterKind.DATE:
                date, cursor = read_date(atoms, i + 1)
            elif combinator.parameter is ParameterKind.SCALE:
                scale, cursor = read_scale_parameter(atoms, i + 1)
                if scale.observable is not None:
                    self._declare(scale.observable, i + 1)

            children: list[int] = []
            for _ in range(combinator.arity):
                child = self.parse(cursor + 1, depth + 1)
                children.append(child.index)
                cursor = child.end
        except ContractError as exc:
            raise exc.add_location(location_frame(atoms, i))

        node = CombinatorNode(
            index=i,
            combinator=combinator,
            children=tuple(children),
            end=cursor,
            date=date,
            scale=scale,
        )
        self.nodes[i] = node
        return node

    def _declare(self, observable: ObservableRef, atom_index: int) -> None:
        key = (observable.name, observable.address.lower())
        if key in self.seen_observables:
            raise DuplicateObservable(
                f"Observable '{observable.name}' with arbiter '{observable.address}' is already declared.",
                atom_index=atom_index,
            )
        self.seen_observables.add(key)


def parse_atoms(atoms: Sequence[str]) -> ContractTree:
    if not atoms:
        raise EmptyInput(NO_CONTRACT_MESSAGE)
    parser = _Parser(atoms)
    root = parser.parse(0)
    return ContractTree(atoms=parser.atoms, nodes=dict(sorted(parser.nodes.items())), root=root.index)


def parse_contract(contract: str) -> ContractTree:
    """Parse contract text into a `ContractTree`, raising the located `ContractError` on failure."""
    return parse_atoms(tokenize(contract))


def normalize_contract(contract: str) -> str:
    """Canonical rendering of a valid contract: lower-case keywords, bracketed dates and addresses."""
    return parse_contract(contract).render()


def verify_contract(contract: Optional[str]) -> VerificationResult:
    """
    Verify contract text, returning a located error instead of raising.

    A valid contract followed by unconsumed atoms verifies successfully with a
    warning attached.
    """
    atoms = tokenize(contract or "")
    if not atoms:
        return VerificationResult(
            error=VerificationError(message=NO_CONTRACT_MESSAGE, kind=EmptyInput.kind),
        )

    try:
        tree = parse_atoms(atoms)
    except ContractError as exc:
        logger.debug(f"[Verifier] rejected contract: {exc}")
        return VerificationResult(error=VerificationError.from_exception(exc))

    result = VerificationResult(end_index=tree.end_index)
    if tree.end_index + 1 < len(atoms):
        result.warning = (
            f"This contract contains extraneous combinators after atom {tree.end_index}. These will have no effect."
        )
        logger.warning(f"[Verifier] {result.warning}")
    return result
