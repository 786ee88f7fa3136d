"""`python -m coalesce` entry point; also how workers are spawned."""

from coalesce.cli import main

main()
