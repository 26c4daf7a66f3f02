from __future__ import annotations

import sys
from datetime import timezone
from enum import Enum

from typing_extensions import Self

if sys.version_info >= (3, 11):
    from enum import StrEnum
else:  # pragma: no cover - exercised on 3.10 only

    class StrEnum(str, Enum):  # noqa: UP042
        def __str__(self) -> str:
            return str(self.value)


UTC = timezone.utc

__all__ = ["Self", "UTC", "StrEnum"]
