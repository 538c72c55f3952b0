# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Entry point for running the scenario suite as a module: python -m codenav_e2e"""

import sys

from .runner import main

if __name__ == "__main__":
    sys.exit(main())
