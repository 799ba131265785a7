"""Decide whether the live dashboard can take over the terminal.

The dashboard switches stdout to the alternate screen and redraws it in
place, so it needs an interactive, cursor-addressable stdout. Checked in
order:

1. ``LOADWATCH_RICH``: ``0``/``false``/``no`` refuses, ``1``/``true``/``yes``
   accepts without further checks
2. ``CI``: refused, there is nobody to watch
3. ``TERM=dumb``: refused, no cursor addressing
4. ``stdout.isatty()``: refused for pipes, redirects and cron

``NO_COLOR`` is not a reason to refuse: Rich already drops colours when it
is set and the dashboard still works in monochrome.

stdin is not checked. ``--stream -`` feeds envelopes through stdin, and
the key poller disables itself when stdin is not a terminal; signals still
cancel the run in that case.
"""

from __future__ import annotations

import os
import sys

RICH_ENV_VAR = "LOADWATCH_RICH"


def dashboard_unavailable_reason() -> str | None:
    """Why the dashboard cannot own the terminal, or None if it can."""
    override = os.environ.get(RICH_ENV_VAR, "").strip().lower()
    if override in ("0", "false", "no"):
        return f"disabled by {RICH_ENV_VAR}={override}"
    if override in ("1", "true", "yes"):
        return None

    if os.environ.get("CI"):
        return "running under CI"

    if os.environ.get("TERM") == "dumb":
        return "TERM=dumb has no cursor addressing"

    try:
        if not sys.stdout.isatty():
            return "stdout is not an interactive terminal"
    except (AttributeError, ValueError):
        return "stdout is not available"

    return None


def should_use_rich() -> bool:
    """True if a live Rich display can own the terminal."""
    return dashboard_unavailable_reason() is None
