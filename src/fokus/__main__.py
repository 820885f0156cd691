"""Allow running as ``python -m fokus``."""

from fokus.cli.main import app

if __name__ == "__main__":
    app()
