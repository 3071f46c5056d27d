"""Allow ``python -m sheetgrid``."""

from sheetgrid.cli import main

main()
