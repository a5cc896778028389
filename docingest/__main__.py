"""Allow ``python -m docingest`` execution."""

from docingest.cli.ingest import main

main()
