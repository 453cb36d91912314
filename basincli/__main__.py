"""Main entry point when executing basincli as a package.

This allows running the package using python -m basincli.
"""

from basincli.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
