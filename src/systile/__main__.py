"""Allow ``python -m systile``."""

import sys

from .cli import main

sys.exit(main())
