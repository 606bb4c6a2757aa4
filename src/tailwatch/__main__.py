"""tailwatch CLI entry point."""

from tailwatch.cli import app

if __name__ == "__main__":
    app()
