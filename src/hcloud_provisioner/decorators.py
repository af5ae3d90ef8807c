"""Command decorators shared by the CLI entry points."""

import sys
from functools import wraps
from typing import Callable

import click

from .errors import ProvisionError
from .shared.logging import get_logger

logger = get_logger(__name__)


def handle_errors(func: Callable):
    """Turn a ProvisionError into a diagnostic on stderr and exit status 1.

    Args:
        func: Click command callback.

    Returns:
        Decorated callback.
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ProvisionError as e:
            logger.debug("command_failed", kind=e.kind.value, details=e.details)
            click.echo(f"Error: {e.message}", err=True)
            sys.exit(1)

    return wrapper


class AliasedGroup(click.Group):
    """Group that also resolves command aliases, e.g. ``rm`` for ``delete``."""

    def __init__(self, *args, aliases: dict[str, str] | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.aliases = aliases or {}

    def get_command(self, ctx, cmd_name):
        return super().get_command(ctx, self.aliases.get(cmd_name, cmd_name))

    def resolve_command(self, ctx, args):
        # Report the canonical name so usage lines stay consistent
        _, cmd, args = super().resolve_command(ctx, args)
        return cmd.name if cmd else None, cmd, args
