# =============================================================================
# src/cli/__main__.py: Package Entry Point
# =============================================================================
#
# Enables running the CLI package itself as a module:
#     python -m src.cli <command> ...
#
# Delegates to the cache administration CLI (cache_admin.py).
# =============================================================================

"""Allow ``python -m src.cli`` execution."""

from src.cli.cache_admin import main

main()
