"""
Package entry point.

Allows running the application via:

    python -m squirrel

This simply forwards execution to squirrel.cli.main().
"""

from squirrel.cli import main

if __name__ == "__main__":
    main()
