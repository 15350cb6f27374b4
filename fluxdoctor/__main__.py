"""Entry point for `python -m fluxdoctor` (runs the REST service).

Usage:
    python -m fluxdoctor
"""

from __future__ import annotations

import asyncio

from fluxdoctor.app import main

asyncio.run(main())
