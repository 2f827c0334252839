"""Shared rich console and status line helpers."""

from rich.console import Console

# Rich console for styled output
console = Console()


def print_success(message: str):
    """Print success message in green."""
    console.print(f"✓ {message}", style="bold green")


def print_error(message: str):
    """Print error message in red."""
    console.print(f"✗ {message}", style="bold red")


def print_info(message: str):
    """Print info message in blue."""
    console.print(f"ℹ {message}", style="blue")


def print_warning(message: str):
    """Print warning message in yellow."""
    console.print(f"⚠ {message}", style="yellow")
