"""linkdex - catalog extraction, caching and typo-tolerant search for published link sheets."""

__version__ = "0.1.0"

def main() -> None:
    """Run the CLI entry point with lazy import."""
    from linkdex.cli.main import main as cli_main

    cli_main()

__all__ = ["main", "__version__"]
