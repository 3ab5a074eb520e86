"""Command-line tools for indexrag.

- ``python -m indexrag.cli`` (or the ``indexrag`` console script) manages
  the document index: add, process, ask, transform, status and migrate.
"""
