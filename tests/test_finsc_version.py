from __future__ import annotations

import importlib.metadata
import importlib.util
import sys
import types
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
MODULE_PATH = ROOT / "src" / "finsc" / "__init__.py"


def test_finsc_version_falls_back_when_version_module_is_absent(monkeypatch) -> None:
    spec = importlib.util.spec_from_file_location("finsc_init_under_test", MODULE_PATH)
    assert spec and spec.loader

    module = importlib.util.module_from_spec(spec)
    core = types.ModuleType("combinator_contracts")
    core.__all__ = []
    monkeypatch.setitem(sys.modules, "combinator_contracts", core)

    def _raise_not_found(_: str) -> str:
        raise importlib.metadata.PackageNotFoundError

    monkeypatch.setattr(importlib.metadata, "version", _raise_not_found)

    spec.loader.exec_module(module)

    assert module.__version__ == "0+unknown"


def test_finsc_reexports_the_core() -> None:
    import combinator_contracts
    import finsc

    assert finsc.Evaluator is combinator_contracts.Evaluator
    assert finsc.serialize_combinator_contract("and zero one") == [2, 0, 1]
    assert "__version__" in finsc.__all__
