from __future__ import annotations

import sys

from fpkgi_server.application.app import main

if __name__ == "__main__":
    sys.exit(main())
