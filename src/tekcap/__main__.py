"""Allow ``python -m tekcap``."""

import sys

from tekcap.cli import main

sys.exit(main())
