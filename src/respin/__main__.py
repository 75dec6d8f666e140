"""respin CLI entry point."""

from respin.cli import app

if __name__ == "__main__":
    app()
