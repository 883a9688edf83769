"""Allow ``python -m gradium``."""

import sys

from .cli import main

sys.exit(main())
