"""
Utilities package for mathrender.

This package contains utility modules for common operations.
"""

from .shell import (
    CommandResult,
    check_command_available,
    run_command_safely,
)
from .log import setup_logging
from .svg_utils import (
    EX_TO_PX,
    REFERENCE_DPI,
    fix_xlink_namespace,
    parse_ex,
    parse_node,
    pixel_size,
    replace_current_color,
)

__all__ = [
    "run_command_safely", "check_command_available", "CommandResult",
    "EX_TO_PX", "REFERENCE_DPI", "parse_ex", "parse_node", "pixel_size",
    "replace_current_color", "fix_xlink_namespace", "setup_logging",
]
