"""Shared modules for hcloud-provisioner.

Functionality used by all three command paths (provision, deploy, manage):
- Logging configuration
"""

from .logging import configure_logging, get_logger, verbosity_to_level

__all__ = [
    "configure_logging",
    "get_logger",
    "verbosity_to_level",
]
