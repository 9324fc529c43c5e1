"""
Core functionality for imagestudio.

This package contains the generation controller, provider adapters,
endpoint configuration and prompt description.
"""
