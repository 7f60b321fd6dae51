"""
Python Module Lifecycle Framework

A small framework for building trees of modules that are loaded, shown,
hidden, enabled, disabled and destroyed through asynchronous lifecycle
hooks, with standardized patterns for options, logging and resource loading.
"""

__version__ = "0.1.0"

# Import core components for easy access
from .composition import extend_class

from .element import Element, ElementFlag

from .module_base import (
    BaseModule,
    LogLevel,
    ConfigParam,
    Dependency,
    ModuleError,
    ConfigError,
    DependencyError,
    OperationError,
    ensure_awaitable,
    run_module,
)

from .log_manager import (
    LogManager,
    ModuleLogger,
    LogEvent,
    LoggingError,
    create_log_manager,
)

from .config_manager import (
    ConfigManager,
    create_config_manager,
    find_config_file,
)

from .resource_manager import (
    ResourceManager,
    ResourceError,
    get_default_resource_manager,
    set_default_resource_manager,
    close_default_resource_manager,
)

# Define what's available via import *
__all__ = [
    # composition exports
    "extend_class",

    # element exports
    "Element",
    "ElementFlag",

    # module_base exports
    "BaseModule",
    "LogLevel",
    "ConfigParam",
    "Dependency",
    "ModuleError",
    "ConfigError",
    "DependencyError",
    "OperationError",
    "ensure_awaitable",
    "run_module",

    # log_manager exports
    "LogManager",
    "ModuleLogger",
    "LogEvent",
    "LoggingError",
    "create_log_manager",

    # config_manager exports
    "ConfigManager",
    "create_config_manager",
    "find_config_file",

    # resource_manager exports
    "ResourceManager",
    "ResourceError",
    "get_default_resource_manager",
    "set_default_resource_manager",
    "close_default_resource_manager",
]
