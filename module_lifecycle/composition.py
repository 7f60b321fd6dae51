#!/usr/bin/env python3
"""
composition.py - Class Composition

Builds subclasses from plain dictionaries of members, so a module type
can be declared without a class statement:

    Greeting = BaseModule.extend({"on_show": lambda self: print("hi")})

The produced class inherits from its base in the usual way and keeps a
``super_class`` reference for explicit calls to overridden members.
"""

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Imports
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

import inspect
from typing import Any, Dict, Optional, Type

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Class Builder
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

def extend_class(
    base: Type,
    members: Optional[Dict[str, Any]] = None,
    static_members: Optional[Dict[str, Any]] = None,
    name: Optional[str] = None
) -> Type:
    """
    Create a subclass of ``base`` from dictionaries of members.

    Members override same-named attributes of ``base``; anything not
    overridden is inherited. Plain functions become methods and receive
    the instance as their first argument. Other callables (including mock
    objects) are stored as they are and are called without the instance.

    An ``__init__`` entry in ``members`` replaces the constructor; without
    one the base constructor receives every argument unchanged.

    Args:
        base: Class to derive from
        members: Instance members (methods and class-level defaults)
        static_members: Class-level members; functions become staticmethods
            and take precedence over ``members``
        name: Name of the new class, defaults to the base's name

    Returns:
        The new class, with ``super_class`` set to ``base``
    """
    namespace: Dict[str, Any] = {'__module__': base.__module__}

    if members:
        namespace.update(members)

    for key, value in (static_members or {}).items():
        if inspect.isfunction(value):
            value = staticmethod(value)
        namespace[key] = value

    namespace['super_class'] = base

    return type(name or base.__name__, (base,), namespace)
