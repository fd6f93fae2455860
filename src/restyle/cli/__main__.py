"""CLI entry point for restyle.cli module.

Enables execution via: python -m restyle.cli <command>
"""

from restyle.cli.main import main

if __name__ == "__main__":
    main()
