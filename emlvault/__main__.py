"""Allow ``python -m emlvault``."""

import sys

from emlvault.cli import main

sys.exit(main())
