"""GeoPrec CLI Exception Hierarchy - Error types and consistent error reporting for commands"""

import functools
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from rich.console import Console

from ..geo_core.exceptions import (
    ConfigurationError, GeoPrecError, InvalidIPAddressError, NoProvidersRespondedError
)

logger = logging.getLogger(__name__)


class GeoCLIError(Exception):
    """Base exception for all CLI-related errors"""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None, exit_code: int = 1):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}
        self.exit_code = exit_code
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/reporting"""
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'context': self.context,
            'timestamp': self.timestamp.isoformat()
        }


class InputFileError(GeoCLIError):
    """Unreadable or malformed observation file"""

    def __init__(self, message: str, path: Optional[str] = None):
        context = {'path': path} if path else {}
        super().__init__(message, "INPUT_ERROR", context, exit_code=2)


SUGGESTIONS = {
    "CONFIG_ERROR": "Check the configuration file, or run 'geoprec config --init PATH' for a template",
    "INVALID_IP": "Provide a valid IPv4 or IPv6 address",
    "INPUT_ERROR": "The file must hold a JSON list of observations or an object with 'observations'",
    "NO_PROVIDERS": "Check network connectivity, or raise the timeout with --timeout",
}


def to_cli_error(error: GeoPrecError) -> GeoCLIError:
    """Wrap an engine error for CLI reporting"""
    if isinstance(error, ConfigurationError):
        return GeoCLIError(str(error), "CONFIG_ERROR")
    if isinstance(error, InvalidIPAddressError):
        return GeoCLIError(str(error), "INVALID_IP", {'ip': error.ip_address}, exit_code=2)
    if isinstance(error, NoProvidersRespondedError):
        return GeoCLIError(str(error), "NO_PROVIDERS", {'ip': error.ip_address}, exit_code=3)
    return GeoCLIError(str(error), "ENGINE_ERROR")


def report_error(error: GeoCLIError, console: Optional[Console] = None) -> None:
    """Print a user-friendly error with an actionable suggestion to stderr"""
    console = console or Console(stderr=True)
    logger.debug(f"CLI Error: {error.to_dict()}")
    console.print(f"[red]✗ Error: {error.message}[/red]")
    for key, value in error.context.items():
        console.print(f"  [dim]{key}: {value}[/dim]")
    suggestion = SUGGESTIONS.get(error.error_code)
    if suggestion:
        console.print(f"[yellow]Suggestion: {suggestion}[/yellow]")


def handle_cli_error(func):
    """Decorator for consistent CLI error handling"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except GeoCLIError as e:
            report_error(e)
            sys.exit(e.exit_code)
        except GeoPrecError as e:
            cli_error = to_cli_error(e)
            report_error(cli_error)
            sys.exit(cli_error.exit_code)

    return wrapper
