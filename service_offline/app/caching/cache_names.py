"""
Version-qualified cache store names.
"""

from dataclasses import dataclass
from typing import FrozenSet


@dataclass(frozen=True)
class CacheNames:
    """The three logical cache namespaces for one worker version.

    Bumping ``version`` is the only way to invalidate every prior entry at
    once: stores whose names are not in ``current()`` are deleted on
    activation.
    """

    prefix: str = "blog"
    version: str = "v2"

    @property
    def static(self) -> str:
        return f"{self.prefix}-static-{self.version}"

    @property
    def dynamic(self) -> str:
        return f"{self.prefix}-dynamic-{self.version}"

    @property
    def general(self) -> str:
        return f"{self.prefix}-cache-{self.version}"

    def current(self) -> FrozenSet[str]:
        return frozenset({self.static, self.dynamic, self.general})

    def is_current(self, name: str) -> bool:
        return name in self.current()
