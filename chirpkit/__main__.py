"""Main entry point when executing chirpkit as a package.

This allows running the package using python -m chirpkit.
"""

from chirpkit.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
