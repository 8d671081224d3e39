#!/usr/bin/env python3
"""Entry point for ``python -m lockorder`` and the ``lock-verify`` script."""

import sys

from lockorder.main import main

if __name__ == "__main__":
    sys.exit(main())
