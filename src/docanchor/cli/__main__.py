"""CLI entry point for docanchor.cli module.

Enables execution via: python -m docanchor.cli
"""

from docanchor.cli.upload import main

if __name__ == "__main__":
    raise SystemExit(main())
