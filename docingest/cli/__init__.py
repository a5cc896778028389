# =============================================================================
# docingest/cli/__init__.py: CLI Package
# =============================================================================
#
# Command-line front end for operators who need to load documents into the
# store, query it, or remove documents without going through a route
# handler.  Commands are argparse subcommands of ingest.py:
#
#   ingest  - upload local files to the file store and run the pipeline
#   search  - vector search (text search with --text) as a given user
#   list    - documents visible to a user
#   delete  - remove a document, its chunks and its stored file
#
# Run as `python -m docingest <command>` or `python -m docingest.cli`.
# =============================================================================

"""Command-line tools for docingest."""
