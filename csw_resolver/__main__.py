# Allows the package to be run as a script using `python -m csw_resolver`

from __future__ import annotations

import sys

from csw_resolver.cli import main

if __name__ == "__main__":
    sys.exit(main())
