"""
Run the roleplay chat.

Usage:
    python -m roleplay --character rick-c137 --user morty
"""

import sys

from .interface.tui import main

sys.exit(main())
