#!/usr/bin/env python3
"""
module_base.py - Module Lifecycle Engine

This is the foundation of the lifecycle framework. A module is a unit
that can be subclassed, composed into a tree of child modules, and driven
through asynchronous lifecycle phases.

Features:
- Declarative options with validation
- Dependency injection with interface validation
- Child module trees with concurrent loading
- Optional bound element reflecting module state as flags
- Hooks that may be plain functions or coroutines
- Standardized logging
"""

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Imports
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

import asyncio
import enum
import functools
import inspect
import sys
import traceback
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Type, TypeVar, Union

from .composition import extend_class
from .element import ElementFlag
from .resource_manager import get_default_resource_manager

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Type Definitions
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

class LogLevel(str, enum.Enum):
    """Standard log levels used across all modules."""
    VERBOSE = 'VERBOSE'
    INFO = 'INFO'
    WARNING = 'WARNING'
    ERROR = 'ERROR'

    @classmethod
    def from_string(cls, level_str: str) -> 'LogLevel':
        """Convert string to LogLevel, defaulting to INFO for unknown values."""
        try:
            return cls[level_str.upper()]
        except (KeyError, AttributeError):
            return cls.INFO

    @classmethod
    def default(cls) -> 'LogLevel':
        """Get default log level for this module."""
        return cls.INFO

    @property
    def rank(self) -> int:
        """Numeric severity used for level filtering."""
        return _LEVEL_RANKS[self]


_LEVEL_RANKS = {
    LogLevel.VERBOSE: 0,
    LogLevel.INFO: 1,
    LogLevel.WARNING: 2,
    LogLevel.ERROR: 3,
}

# Type for validator functions
ValidatorType = Callable[[Any], bool]

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Option & Dependency Declarations
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

@dataclass
class ConfigParam:
    """
    Explicit declaration of a module option.

    Declared options are defaulted and validated when a module is
    initialized. Options that are not declared are passed through untouched.
    """
    name: str
    default: Any
    description: str
    type: Type = None
    required: bool = False
    validators: List[ValidatorType] = field(default_factory=list)

    def __post_init__(self):
        # Infer type from default value if not provided
        if self.type is None and self.default is not None:
            self.type = type(self.default)

    def validate(self, value: Any) -> Any:
        """
        Validate and possibly convert a value.

        Args:
            value: The value to validate

        Returns:
            The validated and possibly converted value

        Raises:
            ValueError: If validation fails
        """
        if value is None:
            if self.required:
                raise ValueError(f"Missing required option '{self.name}'")
            return self.default

        if self.type and not isinstance(value, self.type):
            try:
                value = self.type(value)
            except (ValueError, TypeError):
                raise ValueError(
                    f"Option '{self.name}' should be of type {self.type.__name__}, "
                    f"got {type(value).__name__}"
                )

        for i, validator in enumerate(self.validators):
            if not validator(value):
                raise ValueError(
                    f"Option '{self.name}' failed validation "
                    f"(validator {i+1}): value={value}"
                )

        return value


@dataclass
class Dependency:
    """
    Explicit declaration of a collaborator a module talks to.

    Only the shape of the collaborator is checked: the listed methods must
    be callable and the listed attributes must exist.
    """
    name: str
    description: str
    required: bool = True
    methods: Set[str] = field(default_factory=set)
    attributes: Set[str] = field(default_factory=set)

    def validate(self, dependency: Any) -> bool:
        """
        Validate that a dependency meets requirements.

        Args:
            dependency: The dependency object to validate

        Returns:
            True if valid

        Raises:
            ValueError: If dependency doesn't meet requirements
        """
        for method in sorted(self.methods):
            if not callable(getattr(dependency, method, None)):
                raise ValueError(
                    f"Dependency '{self.name}' missing required method '{method}'"
                )

        for attr in sorted(self.attributes):
            if not hasattr(dependency, attr):
                raise ValueError(
                    f"Dependency '{self.name}' missing required attribute '{attr}'"
                )

        return True


# Interface a bound element has to provide
ELEMENT_INTERFACE = Dependency(
    name="element",
    description="Element whose flags mirror the module state",
    methods={"has_flag", "add_flag", "remove_flag"}
)

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Helper Classes
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

class ConsoleLogger:
    """Standard console logger used when no logger is provided."""

    def __init__(self, min_level: LogLevel = LogLevel.default(), prefix: Optional[str] = None):
        self.min_level = min_level
        self.prefix = f"[{prefix}] " if prefix else ""

    def _should_log(self, level: LogLevel) -> bool:
        """Check if this level should be logged."""
        return level.rank >= self.min_level.rank

    async def log(self, level: LogLevel, message: str):
        """Log a message if level is sufficient."""
        if self._should_log(level):
            print(f"{self.prefix}[{level.value}] {message}", file=sys.stderr)

    async def verbose(self, message: str):
        await self.log(LogLevel.VERBOSE, message)

    async def info(self, message: str):
        await self.log(LogLevel.INFO, message)

    async def warning(self, message: str):
        await self.log(LogLevel.WARNING, message)

    async def error(self, message: str):
        await self.log(LogLevel.ERROR, message)

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Exceptions
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

class ModuleError(Exception):
    """Base exception for all module errors."""
    pass

class ConfigError(ModuleError):
    """Option and configuration errors."""
    pass

class DependencyError(ModuleError):
    """Errors related to missing or invalid dependencies."""
    pass

class OperationError(ModuleError):
    """Errors during module operation."""
    pass

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Awaitable Normalization
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

async def ensure_awaitable(value: Any) -> Any:
    """
    Await a hook result if it is awaitable, otherwise pass it through.

    This lets hooks be written as plain functions or as coroutines while
    callers always await the lifecycle operation.
    """
    if inspect.isawaitable(value):
        return await value
    return value

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Base Classes
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

class BaseModule:
    """
    Base module class that all modules extend.

    A module owns a mapping of child modules and moves through the
    load, show, hide, enable, disable, error and destroy phases. Each phase
    calls an ``on_*`` hook that subclasses override; hooks may return a
    plain value or an awaitable.

    To customize a module, define:
    1. CONFIG_PARAMS: ConfigParam objects for the options it understands
    2. DEPENDENCIES: Dependency objects for the collaborators it uses
    3. Any of the on_load/on_show/on_hide/on_enable/on_disable/on_error hooks
    """

    CONFIG_PARAMS: List[ConfigParam] = [
        ConfigParam(
            name="element",
            default=None,
            description="Element whose flags mirror the module state"
        ),
    ]

    DEPENDENCIES: List[Dependency] = [
        Dependency(
            name="resource_manager",
            description="Loads stylesheets, templates and remote data",
            required=False,
            methods={"load_css", "load_template", "fetch_data"}
        ),
    ]

    # Config section used by from_config(); defaults to the lower-cased class name
    MODULE_ID: Optional[str] = None

    # Direct base of every subclass, set by __init_subclass__ and extend()
    super_class: Optional[Type] = None

    def __init__(
        self,
        options: Optional[Mapping] = None,
        dependencies: Optional[Dict[str, Any]] = None,
        logger: Optional[Any] = None,
        log_level: Optional[Union[str, LogLevel]] = None,
        module_id: Optional[str] = None
    ):
        """
        Set up the module and run initialize().

        Args:
            options: Module options, handed to initialize() untouched
            dependencies: Dictionary of injected collaborators
            logger: Logger or LogManager instance, or None for the console logger
            log_level: Override default log level for this instance
            module_id: Optional explicit module identifier override
        """
        self.module_name = self.__class__.__name__
        self.module_id = module_id or self.MODULE_ID or self.module_name.lower()

        # Set up logging
        self.log_level = LogLevel.from_string(log_level) if log_level else LogLevel.default()
        if logger is not None and callable(getattr(logger, 'bind', None)):
            logger = logger.bind(self.module_name)
        self.logger = logger or ConsoleLogger(self.log_level, prefix=self.module_name)

        self.dependencies = dict(dependencies or {})
        self._validate_dependencies()

        # Lifecycle state
        self.loaded = False
        self.shown = False
        self.disabled = False
        self.errored = False
        self.last_error: Optional[BaseException] = None
        self.destroyed = False

        self.parent: Optional['BaseModule'] = None
        self.options: Mapping = MappingProxyType({})
        self.children: Dict[str, 'BaseModule'] = {}

        self.orig_disabled = False
        self.orig_errored = False
        self._deferred: List[Callable[[], Any]] = []
        self._tasks: List[asyncio.Task] = []

        self.initialize(options)

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.super_class = cls.__bases__[0]

    @classmethod
    def extend(
        cls,
        members: Optional[Dict[str, Any]] = None,
        static_members: Optional[Dict[str, Any]] = None,
        name: Optional[str] = None
    ) -> Type['BaseModule']:
        """Derive a subclass from a dict of members. See extend_class()."""
        return extend_class(cls, members, static_members, name)

    @classmethod
    def from_config(cls, config_manager: Any, module_id: Optional[str] = None, **kwargs) -> 'BaseModule':
        """
        Build a module whose options come from a configuration section.

        Args:
            config_manager: ConfigManager holding a section per module id
            module_id: Section to read; defaults to MODULE_ID or the class name
            **kwargs: Extra constructor arguments (dependencies, logger, ...)

        Returns:
            The new module
        """
        module_id = module_id or cls.MODULE_ID or cls.__name__.lower()
        return cls(config_manager.section(module_id), module_id=module_id, **kwargs)

    def _validate_dependencies(self):
        """Check that all required dependencies are present and valid."""
        for dep_spec in self.DEPENDENCIES:
            if dep_spec.name not in self.dependencies:
                if dep_spec.required:
                    raise DependencyError(f"Missing required dependency: '{dep_spec.name}' - {dep_spec.description}")
                continue

            try:
                dep_spec.validate(self.dependencies[dep_spec.name])
            except ValueError as e:
                raise DependencyError(str(e))

    def _parse_options(self, options: Optional[Mapping]) -> Dict[str, Any]:
        """
        Merge supplied options over the declared defaults.

        Args:
            options: Mapping of options or None

        Returns:
            New dict with declared options validated and all others copied
        """
        if options is None:
            options = {}
        elif not isinstance(options, Mapping):
            raise ConfigError(
                f"Options for {self.module_name} must be a mapping, got {type(options).__name__}"
            )

        result = {}
        for param in self.CONFIG_PARAMS:
            try:
                result[param.name] = param.validate(options.get(param.name))
            except ValueError as e:
                raise ConfigError(str(e))

        for key, value in options.items():
            if key not in result:
                result[key] = value

        return result

    async def _log(self, level: LogLevel, message: str):
        """Log with level check for efficiency."""
        if self.logger:
            if hasattr(self.logger, '_should_log') and not self.logger._should_log(level):
                return

            log_method = getattr(self.logger, level.value.lower(), None)
            if log_method:
                await log_method(message)
            else:
                await self.logger.log(level, message)

    def _schedule(self, work: Callable[[], Any]):
        """
        Start async work from synchronous code.

        With a running loop the work becomes a task right away. Otherwise it
        is queued and started by the next lifecycle call.

        Args:
            work: Zero-argument callable returning an awaitable or a value
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._deferred.append(work)
            return
        self._tasks.append(loop.create_task(ensure_awaitable(work())))

    def _call_hook_now(self, hook: Callable[..., Any], *args):
        """Call a hook from the constructor, scheduling any async part."""
        if inspect.iscoroutinefunction(hook):
            self._schedule(functools.partial(hook, *args))
            return
        result = hook(*args)
        if inspect.isawaitable(result):
            self._schedule(lambda: result)

    async def _flush_deferred(self):
        """Finish log writes and hook results started while constructing."""
        while self._deferred:
            work = self._deferred.pop(0)
            await ensure_awaitable(work())
        while self._tasks:
            await self._tasks.pop(0)

    #-- Element handling -------------------------------------------------------

    @property
    def element(self) -> Optional[Any]:
        """The bound element, if any."""
        return self.options.get('element')

    def _add_flag(self, flag: ElementFlag):
        if self.element is not None:
            self.element.add_flag(flag)

    def _remove_flag(self, flag: ElementFlag):
        if self.element is not None:
            self.element.remove_flag(flag)

    def _adopt_element_state(self):
        """Take over the disabled/error state an element already carries."""
        element = self.element
        if element is None:
            return
        try:
            ELEMENT_INTERFACE.validate(element)
        except ValueError as e:
            raise DependencyError(str(e))

        if element.has_flag(ElementFlag.DISABLED):
            self.orig_disabled = True
            self._apply_disabled(True)
            self._call_hook_now(self.on_disable)

        if element.has_flag(ElementFlag.ERROR):
            self.orig_errored = True
            err = ModuleError(f"{self.module_name} element was flagged as erroring")
            self._apply_error(err)
            self._schedule(functools.partial(self._log_error, err))
            self._call_hook_now(self.on_error, err)

    def _reset_element_state(self):
        """Put the element's disabled/error flags back the way we found them."""
        if self.element is None:
            return
        if self.orig_disabled:
            self._add_flag(ElementFlag.DISABLED)
        else:
            self._remove_flag(ElementFlag.DISABLED)

        if self.orig_errored:
            self._add_flag(ElementFlag.ERROR)
        else:
            self._remove_flag(ElementFlag.ERROR)

    def _apply_disabled(self, disabled: bool):
        if disabled:
            self._add_flag(ElementFlag.DISABLED)
        else:
            self._remove_flag(ElementFlag.DISABLED)
        self.disabled = disabled

    def _apply_error(self, err: BaseException):
        self._add_flag(ElementFlag.ERROR)
        self.errored = True
        self.last_error = err
        self.loaded = False

    async def _log_error(self, err: BaseException):
        await self._log(LogLevel.ERROR, f"Module error: {err!r}")
        if err.__traceback__ is not None:
            tb = ''.join(traceback.format_exception(type(err), err, err.__traceback__))
            await self._log(LogLevel.VERBOSE, tb.rstrip())

    #-- Children ---------------------------------------------------------------

    def add_child(self, key: str, module: 'BaseModule') -> 'BaseModule':
        """
        Register a child module under a key.

        Args:
            key: Name of the child, unique within this module
            module: Module to take ownership of

        Returns:
            The child module

        Raises:
            ModuleError: If the key is taken or the module can't be owned
            OperationError: If either module has been destroyed
        """
        if self.destroyed or module.destroyed:
            raise OperationError(f"Cannot add a destroyed module as '{key}' of {self.module_name}")
        if key in self.children:
            raise ModuleError(f"{self.module_name} already has a child named '{key}'")
        if module is self:
            raise ModuleError(f"{self.module_name} cannot be its own child")
        if module.parent is not None:
            raise ModuleError(
                f"{module.module_name} is already a child of {module.parent.module_name}"
            )
        module.parent = self
        self.children[key] = module
        return module

    def remove_child(self, key: str) -> Optional['BaseModule']:
        """Detach a child without destroying it; returns None if missing."""
        module = self.children.pop(key, None)
        if module is not None:
            module.parent = None
        return module

    #-- Hooks ------------------------------------------------------------------

    def initialize(self, options: Optional[Mapping] = None):
        """
        Set up options and children.

        Runs synchronously from the constructor. Subclasses overriding this
        should call the base implementation so options and the element are
        handled.

        Args:
            options: Mapping of options; ``element`` binds an element
        """
        self.options = MappingProxyType(self._parse_options(options))
        self.children = {}
        self._adopt_element_state()

    def on_load(self, options: Any = None) -> Any:
        """Called by load() once all children are loaded."""
        return None

    def on_show(self) -> Any:
        """Called by show()."""
        return None

    def on_hide(self) -> Any:
        """Called by hide()."""
        return None

    def on_enable(self) -> Any:
        """Called by enable()."""
        return None

    def on_disable(self) -> Any:
        """Called by disable()."""
        return None

    def on_error(self, err: BaseException) -> Any:
        """Called by error() with the error that was raised."""
        return None

    #-- Lifecycle --------------------------------------------------------------

    async def load(self, options: Any = None) -> Any:
        """
        Load all child modules, then this module.

        Does nothing if the module is already loaded. A failure in on_load()
        is handed to error() instead of being raised; a failure while loading
        a child is raised and on_load() is not called.

        Args:
            options: Passed to on_load() as is

        Raises:
            OperationError: If the module has already been destroyed
        """
        if self.destroyed:
            raise OperationError(f"{self.module_name} has been destroyed and cannot be loaded")
        if self.loaded:
            return None
        await self._flush_deferred()

        children = [child for child in self.children.values() if child is not None]
        if children:
            await self._log(LogLevel.VERBOSE, f"Loading {len(children)} child module(s)")
            await asyncio.gather(*(child.load() for child in children))

        try:
            result = await ensure_awaitable(self.on_load(options))
        except Exception as e:
            if self.destroyed:
                await self._log(LogLevel.WARNING, f"Load failed after destroy: {e!r}")
                return None
            await self.error(e)
            return None

        if self.destroyed:
            await self._log(LogLevel.VERBOSE, "Destroyed while loading, not marking as loaded")
            return result

        self.loaded = True
        self._add_flag(ElementFlag.LOADED)
        await self._log(LogLevel.INFO, f"Loaded {self.module_name}")
        return result

    async def show(self) -> Any:
        """Show the module; warns if it has not been loaded yet."""
        await self._flush_deferred()
        if not self.loaded:
            await self._log(LogLevel.WARNING, f"{self.module_name}.show() was called before load()")
        self._add_flag(ElementFlag.ACTIVE)
        self.shown = True
        return await ensure_awaitable(self.on_show())

    async def hide(self) -> Any:
        """Hide the module; warns if it has not been loaded yet."""
        await self._flush_deferred()
        if not self.loaded:
            await self._log(LogLevel.WARNING, f"{self.module_name}.hide() was called before load()")
        self._remove_flag(ElementFlag.ACTIVE)
        self.shown = False
        return await ensure_awaitable(self.on_hide())

    async def enable(self) -> Any:
        """Enable the module."""
        await self._flush_deferred()
        self._apply_disabled(False)
        return await ensure_awaitable(self.on_enable())

    async def disable(self) -> Any:
        """Disable the module."""
        await self._flush_deferred()
        self._apply_disabled(True)
        return await ensure_awaitable(self.on_disable())

    async def error(self, err: Optional[BaseException] = None) -> Any:
        """
        Put the module into the error state.

        The element is flagged and the loaded state is dropped before
        on_error() runs. Exceptions raised by on_error() propagate.

        Args:
            err: The error to report; a bare ModuleError if omitted
        """
        await self._flush_deferred()
        if err is None:
            err = ModuleError()
        self._apply_error(err)
        await self._log_error(err)
        return await ensure_awaitable(self.on_error(err))

    #-- Resources --------------------------------------------------------------

    @property
    def resource_manager(self) -> Any:
        """Injected resource manager, or the shared default one."""
        return self.dependencies.get('resource_manager') or get_default_resource_manager()

    def fetch_remote_data(self, url: str, options: Optional[Dict[str, Any]] = None) -> Awaitable:
        """Request data for the module from the resource manager."""
        return self.resource_manager.fetch_data(url, options)

    def get_styles(self, urls: Union[str, List[str]]) -> Awaitable:
        """Load the module's stylesheets through the resource manager."""
        return self.resource_manager.load_css(urls)

    def get_template(self, url: str) -> Awaitable:
        """Load the module's template through the resource manager."""
        return self.resource_manager.load_template(url)

    def transform_data(self, data: Any) -> Any:
        """Shape fetched data before use. Returns it unchanged by default."""
        return data

    #-- Teardown ---------------------------------------------------------------

    def destroy(self):
        """Destroy all child modules and restore the element's original flags."""
        for key, child in list(self.children.items()):
            if child is not None:
                child.destroy()
                child.parent = None
        self.children = {}

        self._reset_element_state()

        # Queued work is dropped; tasks already started run to completion
        self._deferred = []

        self.destroyed = True

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Helper Functions
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

T = TypeVar('T', bound=BaseModule)

async def run_module(
    module_class: Type[T],
    *args,
    load_options: Any = None,
    show: bool = True,
    **kwargs
) -> T:
    """
    Helper to construct, load and show a module.

    Args:
        module_class: Module class to instantiate
        *args, **kwargs: Arguments to pass to module constructor
        load_options: Passed to load()
        show: Whether to show the module once loaded

    Returns:
        The module instance
    """
    module = module_class(*args, **kwargs)

    try:
        await module.load(load_options)
        if show:
            await module.show()
    except Exception:
        module.destroy()
        raise

    return module
