# pngshrink/__main__.py
"""Allow `python -m pngshrink SRC DST ...`."""

import sys

from .cli import main

sys.exit(main())
