"""Allow ``python -m code_context``."""

from .cli import cli

if __name__ == "__main__":
    cli()
