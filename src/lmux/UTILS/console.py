"""
Diagnostic messages on stderr, kept out of the merged log output.
"""
import click

_verbose = False

def set_verbose(enabled: bool):
    """
    Enables or disables diagnostic output for the process.
    """
    global _verbose
    _verbose = enabled

def is_verbose() -> bool:
    return _verbose

def debug(source: str, message: str):
    """
    Prints ``[source] message`` to stderr when verbose output is enabled.
    """
    if _verbose:
        click.echo(f"[{source}] {message}", err=True)
