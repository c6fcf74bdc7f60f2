"""Allow ``python -m lexgen``."""

import sys

from .cli import main

sys.exit(main())
