"""
fieldpack/__main__.py
=====================

Entry point for ``python -m fieldpack``; see :mod:`fieldpack.main`.
"""

from fieldpack.main import main

if __name__ == "__main__":
    raise SystemExit(main())
