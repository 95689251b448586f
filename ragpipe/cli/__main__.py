"""Allow ``python -m ragpipe.cli`` execution."""

from ragpipe.cli.commands import main

main()
