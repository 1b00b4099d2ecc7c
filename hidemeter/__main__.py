"""Allow ``python -m hidemeter``."""

import sys

from .main import main

sys.exit(main())
