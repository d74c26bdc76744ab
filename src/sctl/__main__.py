"""Allow running sctl as ``python -m sctl``."""

from sctl.cli import cli

if __name__ == "__main__":
    cli()
