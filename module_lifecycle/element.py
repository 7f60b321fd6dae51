#!/usr/bin/env python3
"""
element.py - Bound Element

An element is the external handle a module can be bound to. It carries a
set of named flags that the module reads when it is created and toggles as
it moves through its lifecycle.
"""

import enum
from typing import Iterable, FrozenSet, Union


class ElementFlag(str, enum.Enum):
    """Flags a module sets on its element."""
    LOADED = 'module-loaded'
    ACTIVE = 'module-active'
    DISABLED = 'module-disabled'
    ERROR = 'module-error'


FlagType = Union[ElementFlag, str]


def _flag_name(flag: FlagType) -> str:
    return flag.value if isinstance(flag, ElementFlag) else str(flag)


class Element:
    """
    Minimal element holding a set of named flags.

    Flags can be given as ElementFlag members or as their string values,
    so ``Element(flags=["module-disabled"])`` starts out disabled.
    """

    def __init__(self, name: str = "element", flags: Iterable[FlagType] = ()):
        self.name = name
        self._flags = {_flag_name(flag) for flag in flags}

    @property
    def flags(self) -> FrozenSet[str]:
        """Snapshot of the flags currently set."""
        return frozenset(self._flags)

    def has_flag(self, flag: FlagType) -> bool:
        return _flag_name(flag) in self._flags

    def add_flag(self, flag: FlagType):
        self._flags.add(_flag_name(flag))

    def remove_flag(self, flag: FlagType):
        self._flags.discard(_flag_name(flag))

    def __repr__(self) -> str:
        return f"Element({self.name!r}, flags={sorted(self._flags)!r})"
