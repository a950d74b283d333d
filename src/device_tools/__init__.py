"""Device Tools - adapter tools over system and web services."""

__version__ = "0.1.0"

from device_tools.exceptions import ArgumentError, ErrorKind, ToolError

__all__ = ["__version__", "ArgumentError", "ErrorKind", "ToolError"]
