"""CLI subcommands."""

from .deploy import deploy
from .manage import manage

__all__ = ["deploy", "manage"]
