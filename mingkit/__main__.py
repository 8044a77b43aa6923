"""Allow ``python -m mingkit``."""

import sys

from mingkit.cli import main

sys.exit(main())
