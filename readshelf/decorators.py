"""Decorators for readshelf CLI commands."""

import functools
import logging
from typing import Any, Callable

import typer
import yaml
from rich.console import Console

from .criteria import CriteriaValidationError

logger = logging.getLogger(__name__)
err_console = Console(stderr=True)

# Exit codes
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def _fail(message: str, code: int = EXIT_ERROR) -> typer.Exit:
    err_console.print(message)
    return typer.Exit(code=code)


def handle_cli_errors(func: Callable) -> Callable:
    """
    Turn errors raised by a command into a message and an exit code.

    - FileNotFoundError: books, preset or config file missing
    - yaml.YAMLError: a books or preset file that is not valid YAML
    - CriteriaValidationError: filters that cannot form valid criteria
    - ValueError: bad records, unknown presets, statuses or sort keys
    - KeyboardInterrupt: exit 130
    - anything else is logged with its traceback
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except FileNotFoundError as e:
            raise _fail(f"[bold red]Error:[/bold red] File not found: {e}")
        except yaml.YAMLError as e:
            raise _fail(f"[bold red]Error:[/bold red] Malformed YAML: {e}")
        except CriteriaValidationError as e:
            raise _fail(f"[bold red]Error:[/bold red] Invalid criteria: {e}")
        except ValueError as e:
            raise _fail(f"[bold red]Error:[/bold red] Invalid input: {e}")
        except KeyboardInterrupt:
            raise _fail("\n[yellow]Cancelled[/yellow]", EXIT_INTERRUPTED)
        except Exception as e:
            logger.exception(f"{func.__name__} failed")
            raise _fail(f"[bold red]Unexpected error:[/bold red] {e}")

    return wrapper
