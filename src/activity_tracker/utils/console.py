"""Rich console output helpers shared by the CLI and console notifier."""

from rich.console import Console
from rich.panel import Panel

console = Console()
error_console = Console(stderr=True)


def print_header(title: str) -> None:
    console.print(Panel.fit(f"[bold]{title}[/bold]", border_style="cyan"))


def print_info(message: str) -> None:
    console.print(f"[cyan]ℹ[/cyan] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_warning(message: str) -> None:
    console.print(f"[yellow]⚠[/yellow] {message}")


def print_error(message: str) -> None:
    error_console.print(f"[red]✗[/red] {message}")
