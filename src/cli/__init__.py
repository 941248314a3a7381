"""Command-line tools for the render cache.

- ``python -m src.cli``: inspect entries, write test entries, list and
  invalidate tags, and print the resolved configuration
  (see :mod:`src.cli.cache_admin`).
"""
