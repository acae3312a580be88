"""Allow running the CLI with ``python -m segmented_archive``."""

from .cli import cli

if __name__ == '__main__':
    cli()
