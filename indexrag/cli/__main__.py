"""Allow ``python -m indexrag.cli`` execution."""

from indexrag.cli.manage import main

main()
