#!/usr/bin/env python3
"""
Tests for the composition.py functionality.

These tests verify the proper operation of:
- Deriving module classes from member dictionaries
- Constructor replacement and forwarding
- Explicit calls to overridden members
- Static member handling
"""

import sys
from pathlib import Path
from unittest import mock

import pytest

# Add parent directory to sys.path to allow importing the framework
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from module_lifecycle import BaseModule, LogLevel, extend_class

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Test Cases
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

class TestExtend:
    """Test cases for BaseModule.extend()."""

    def test_instance_has_own_and_inherited_members(self):
        method = mock.Mock()
        Custom = BaseModule.extend({"my": "myProp", "custom": method})
        instance = Custom(log_level=LogLevel.ERROR)

        assert instance.my == "myProp"
        assert instance.custom is method
        assert isinstance(instance, BaseModule)
        assert Custom.load is BaseModule.load
        instance.destroy()

    def test_functions_become_methods(self):
        Custom = BaseModule.extend({"describe": lambda self: f"I am {self.module_name}"})
        assert Custom(log_level=LogLevel.ERROR).describe() == "I am BaseModule"

    def test_initialize_called_on_instantiation(self):
        initialize = mock.Mock()
        Custom = BaseModule.extend({"initialize": initialize})

        assert initialize.call_count == 0
        Custom()
        assert initialize.call_count == 1

    def test_explicit_call_to_overridden_member(self):
        def initialize(self, options=None):
            Custom.super_class.initialize(self, options)

        Custom = BaseModule.extend({"initialize": initialize})

        assert Custom.super_class is BaseModule
        with mock.patch.object(BaseModule, "initialize") as base_initialize:
            instance = Custom({"a": 1})

        base_initialize.assert_called_once_with(instance, {"a": 1})

    def test_super_call_keeps_base_behavior(self):
        def initialize(self, options=None):
            Custom.super_class.initialize(self, options)
            self.ready = True

        Custom = BaseModule.extend({"initialize": initialize})
        instance = Custom({"title": "x"}, log_level=LogLevel.ERROR)

        assert instance.ready
        assert instance.options["title"] == "x"
        assert instance.children == {}

    def test_two_level_override(self):
        SubClass = BaseModule.extend({"test_method": None})
        spy = mock.Mock()
        SubSubClass = SubClass.extend({"test_method": spy})

        SubSubClass(log_level=LogLevel.ERROR).test_method()

        assert spy.call_count == 1
        assert SubClass(log_level=LogLevel.ERROR).test_method is None
        assert SubSubClass.super_class is SubClass
        assert issubclass(SubSubClass, BaseModule)

    def test_class_statement_subclass_has_super_class(self):
        class Panel(BaseModule):
            pass

        class Sidebar(Panel):
            pass

        Collapsible = Sidebar.extend({"collapsed": True})

        assert Panel.super_class is BaseModule
        assert Sidebar.super_class is Panel
        assert Collapsible.super_class is Sidebar
        assert BaseModule.super_class is None

    def test_custom_constructor(self):
        def __init__(self, title):
            BaseModule.__init__(self, {"title": title}, log_level=LogLevel.ERROR)

        Titled = BaseModule.extend({"__init__": __init__}, name="Titled")
        instance = Titled("Dashboard")

        assert instance.options["title"] == "Dashboard"
        assert instance.module_name == "Titled"

    def test_constructor_arguments_forwarded(self):
        Custom = BaseModule.extend()
        instance = Custom({"a": 1}, module_id="custom", log_level=LogLevel.ERROR)

        assert instance.module_id == "custom"
        assert instance.options["a"] == 1

    @pytest.mark.asyncio
    async def test_no_members_gives_equivalent_class(self):
        Same = BaseModule.extend()
        instance = Same(log_level=LogLevel.ERROR)

        assert Same.__name__ == "BaseModule"
        assert Same is not BaseModule
        await instance.load()
        assert instance.loaded

    def test_static_members(self):
        Custom = BaseModule.extend(
            {"VERSION": 1},
            {"VERSION": 2, "create": lambda: "made"}
        )

        assert Custom.VERSION == 2
        assert Custom.create() == "made"
        assert Custom(log_level=LogLevel.ERROR).create() == "made"
        assert Custom.CONFIG_PARAMS is BaseModule.CONFIG_PARAMS


class TestExtendClass:
    """Test cases for extend_class() on arbitrary classes."""

    def test_plain_class(self):
        class Greeter:
            def __init__(self, name):
                self.name = name

            def greet(self):
                return f"hello {self.name}"

        Loud = extend_class(Greeter, {"shout": lambda self: self.greet().upper()}, name="Loud")
        loud = Loud("bob")

        assert loud.shout() == "HELLO BOB"
        assert isinstance(loud, Greeter)
        assert Loud.__name__ == "Loud"
        assert Loud.__module__ == Greeter.__module__
