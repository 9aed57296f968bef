from .cli import cli, main
from .cli_exceptions import GeoCLIError, InputFileError

__all__ = ["cli", "main", "GeoCLIError", "InputFileError"]
