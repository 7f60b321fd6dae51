"""
Test suite for the Python Module Lifecycle Framework.

This package contains tests for all components of the framework:
- module_base.py: Module lifecycle engine
- composition.py: Class composition
- element.py: Bound element flags
- log_manager.py: Logging system
- config_manager.py: Configuration management
- resource_manager.py: Resource loading
"""
