"""
Live terminal dashboard for a running load test.

Layout while data is flowing (one block per region, lexicographic order):

    Region: eu-west-1
       TotReqs   TotBytes    AvgTime   AvgReq/s  AvgKbps/s
           500     1.2 MB     0.052s      19.21      24.60
       Slowest    Fastest   Timeouts  TotErrors
        0.310s     0.011s          0          3

    Region: us-east-1
    ...

    100.0% [####################################################]
    ...
    Press ctrl-c to interrupt

Before the first envelope arrives a launch banner and logo occupy the top
rows; they are blanked once, on the first render.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from loadwatch.formatting import format_region
from loadwatch.models import RegionSnapshot
from loadwatch.progress import BAR_WIDTH, format_percent, make_bar
from loadwatch.surface import Surface

logger = logging.getLogger(__name__)

LAUNCH_MESSAGE = "Launching... (be patient)"
CANCEL_HINT = "Press ctrl-c to interrupt"

LOGO = (
    r"  _                 _               _       _",
    r" | | ___   __ _  __| |_      ____ _| |_ ___| |__",
    r" | |/ _ \ / _` |/ _` \ \ /\ / / _` | __/ __| '_ \ ",
    r" | | (_) | (_| | (_| |\ V  V / (_| | || (__| | | |",
    r" |_|\___/ \__,_|\__,_| \_/\_/ \__,_|\__\___|_| |_|",
    r" Global load testing, region by region",
)

REGION_LABEL = "Region: "
REGION_LABEL_STYLE = "white on blue"
REGION_ID_STYLE = "bold white on blue"
HEADING_STYLE = "bold"

# Rows per region block: header, two headings, two value lines
REGION_BLOCK_HEIGHT = 5


class Dashboard:
    """Draws the run state onto a ``Surface``.

    Use as a context manager so the surface is released on every exit
    path, including exceptions:

        with Dashboard(surface) as dash:
            dash.render(regions, fraction)
    """

    def __init__(self, surface: Surface, bar_width: int = BAR_WIDTH) -> None:
        self.surface = surface
        self.bar_width = bar_width
        self._banner_cleared = False
        self._closed = False

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def __enter__(self) -> Dashboard:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self.surface.close()

    # -----------------------------
    # Transient content
    # -----------------------------
    @property
    def banner_lines(self) -> tuple[str, ...]:
        return (LAUNCH_MESSAGE, *LOGO)

    @property
    def banner_cleared(self) -> bool:
        return self._banner_cleared

    def draw_banner(self) -> None:
        """Draw the launch message and logo, then flush."""
        for y, line in enumerate(self.banner_lines):
            self.surface.draw_text(0, y, line)
        self.surface.flush()

    def clear_banner(self) -> None:
        """Blank the banner footprint. Only the first call has an effect."""
        if self._banner_cleared:
            return
        lines = self.banner_lines
        footprint = max(len(line) for line in lines)
        for y in range(len(lines)):
            self.surface.draw_text(0, y, " " * footprint)
        self._banner_cleared = True
        logger.debug("Launch banner cleared")

    def draw_hint(self) -> None:
        """Draw the cancellation hint on the bottom row, then flush."""
        _, height = self.surface.size()
        self.surface.draw_text(0, height - 1, CANCEL_HINT)
        self.surface.flush()

    # -----------------------------
    # Data frames
    # -----------------------------
    def _content_rows(self) -> int:
        # bottom row belongs to the hint
        _, height = self.surface.size()
        return max(0, height - 1)

    def _blank_content(self) -> None:
        width, _ = self.surface.size()
        blank = " " * width
        for y in range(self._content_rows()):
            self.surface.draw_text(0, y, blank)

    def _draw_line(self, y: int, text: str, style: str | None = None) -> None:
        if y < self._content_rows():
            self.surface.draw_text(0, y, text, style)

    def _draw_region(self, region_id: str, snapshot: RegionSnapshot, y: int) -> int:
        """Draw one region block at row ``y``; return the next free row."""
        if y < self._content_rows():
            self.surface.draw_text(0, y, REGION_LABEL, REGION_LABEL_STYLE)
            self.surface.draw_text(len(REGION_LABEL), y, region_id, REGION_ID_STYLE)
        y += 1
        for text, is_heading in format_region(snapshot).lines():
            self._draw_line(y, text, HEADING_STYLE if is_heading else None)
            y += 1
        return y

    def _draw_progress(self, fraction: float, y: int) -> None:
        self._draw_line(y, f"{format_percent(fraction)} {make_bar(fraction, self.bar_width)}")

    def render(
        self, regions: Sequence[tuple[str, RegionSnapshot]], fraction: float
    ) -> None:
        """Redraw every content row and flush.

        Args:
            regions: (region id, snapshot) pairs in display order.
            fraction: Fraction complete; the bar clamps it visually.
        """
        self._blank_content()
        y = 0
        for region_id, snapshot in regions:
            y = self._draw_region(region_id, snapshot, y)
            y += 1
        self._draw_progress(fraction, y)
        self.surface.flush()
