# combinator_contracts/cli.py
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict, is_dataclass
from typing import Any, Optional, Sequence, Union

from loguru import logger
from pydantic import BaseModel, ValidationError

from combinator_contracts.errors import ContractError
from combinator_contracts.evaluator import Evaluator
from combinator_contracts.horizons import compile_contract
from combinator_contracts.log import configure_logging
from combinator_contracts.serialization import deserialize_combinator_contract, serialize_combinator_contract
from combinator_contracts.settings import EngineSettings
from combinator_contracts.time_slices import TimeSlices
from combinator_contracts.verifier import normalize_contract, verify_contract

EXIT_OK = 0
EXIT_CONTRACT_ERROR = 1

_FIRST = {"first", "true", "1st"}
_SECOND = {"second", "false", "2nd"}


def _to_jsonable(x: Any) -> Any:
    if x is None:
        return None
    if isinstance(x, BaseModel):
        return x.model_dump(mode="json")
    if isinstance(x, TimeSlices):
        return [_to_jsonable(s) for s in x]
    if is_dataclass(x) and not isinstance(x, type):
        return asdict(x)
    if isinstance(x, dict):
        return {str(k): _to_jsonable(v) for k, v in x.items()}
    if isinstance(x, (list, tuple)):
        return [_to_jsonable(v) for v in x]
    return x


def _emit(payload: Any) -> None:
    print(json.dumps(_to_jsonable(payload), indent=2, ensure_ascii=False))


def _read_contract(raw: str) -> str:
    return sys.stdin.read() if raw == "-" else raw


def _parse_choice(raw: str) -> Union[bool, int]:
    value = raw.strip().lower()
    if value in _FIRST:
        return True
    if value in _SECOND:
        return False
    return int(value)


def _parse_observable(raw: str) -> tuple[int, int]:
    ordinal, sep, value = raw.partition("=")
    if not sep:
        raise ValueError("--observable must look like ORDINAL=VALUE")
    return int(ordinal), int(value)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="finsc",
        description="Verify, serialize and step through combinator financial contracts.",
    )
    parser.add_argument("--log-level", default=None, help="Override FINSC_LOG_LEVEL for this run.")
    commands = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("verify", "Check a contract and report the first error with its location."),
        ("serialize", "Encode a contract as ledger bytecode."),
        ("normalize", "Print the canonical form of a contract."),
        ("horizon", "Print the horizon, time slices and anytime time slices of a contract."),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("contract", help="Contract text, or '-' to read it from stdin.")

    deserialize = commands.add_parser("deserialize", help="Decode ledger bytecode back into contract text.")
    deserialize.add_argument("words", nargs="+", help="Bytecode words.")
    deserialize.add_argument("--start", type=int, default=0, help="Index of the first word to decode.")

    evaluate = commands.add_parser("evaluate", help="Step through a contract with the given choices and evaluate it.")
    evaluate.add_argument("contract", help="Contract text, or '-' to read it from stdin.")
    evaluate.add_argument(
        "--choice",
        action="append",
        default=[],
        metavar="CHOICE",
        help="Next step-through value: a unix time for acquisition times, first/second for or-choices. Repeatable.",
    )
    evaluate.add_argument(
        "--observable",
        action="append",
        default=[],
        metavar="ORDINAL=VALUE",
        help="Known observable value, by declaration ordinal. Repeatable.",
    )
    evaluate.add_argument("--show-times", action="store_true", help="Annotate each term with its acquisition time.")
    evaluate.add_argument("--include-past", action="store_true", help="Offer acquisition times before now.")
    evaluate.add_argument("--now", type=int, default=None, help="Pin the current unix time.")
    return parser


def _run(args: argparse.Namespace, parser: argparse.ArgumentParser, settings: EngineSettings) -> int:
    if args.command == "verify":
        result = verify_contract(_read_contract(args.contract))
        _emit({"valid": result.is_valid, **result.model_dump(mode="json")})
        return EXIT_OK if result.is_valid else EXIT_CONTRACT_ERROR

    if args.command == "serialize":
        _emit({"bytecode": serialize_combinator_contract(_read_contract(args.contract))})
        return EXIT_OK

    if args.command == "normalize":
        _emit({"contract": normalize_contract(_read_contract(args.contract))})
        return EXIT_OK

    if args.command == "deserialize":
        try:
            words = [int(word) for word in args.words]
        except ValueError:
            parser.error("bytecode words must be integers")
        _emit(deserialize_combinator_contract(args.start, words))
        return EXIT_OK

    if args.command == "horizon":
        compiled = compile_contract(_read_contract(args.contract))
        _emit(
            {
                "horizon": compiled.horizon,
                "time_slices": compiled.get_time_slices(),
                "anytime_time_slices": compiled.get_anytime_time_slices(),
            }
        )
        return EXIT_OK

    # evaluate
    try:
        choices = [_parse_choice(raw) for raw in args.choice]
        observable_values = dict(_parse_observable(raw) for raw in args.observable)
    except ValueError as exc:
        parser.error(str(exc))

    if args.include_past:
        settings = settings.model_copy(update={"include_past_options": True})
    clock = (lambda: args.now) if args.now is not None else None
    evaluator = Evaluator(settings=settings, clock=clock)
    evaluator.set_contract(_read_contract(args.contract))

    for choice in choices:
        if not evaluator.has_next_step():
            break
        evaluator.set_step_through_option(choice)

    pending = evaluator.get_next_step_through_options()
    _emit(
        {
            "complete": pending is None,
            "value": None if pending is not None else evaluator.evaluate(args.show_times, observable_values),
            "pending": pending,
            "values": evaluator.get_prev_values(),
        }
    )
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = EngineSettings.from_env()
        if args.log_level:
            settings.log.level = args.log_level
    except ValidationError as exc:
        parser.error(f"invalid settings: {exc}")
    configure_logging(settings.log)

    try:
        return _run(args, parser, settings)
    except ContractError as exc:
        logger.debug(f"[CLI] {args.command} failed: {exc}")
        _emit(
            {
                "error": {
                    "kind": exc.kind.value,
                    "message": exc.message,
                    "atom_index": exc.atom_index,
                    "location_stack": exc.location_stack,
                }
            }
        )
        return EXIT_CONTRACT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
