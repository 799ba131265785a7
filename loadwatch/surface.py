"""
Terminal cell surfaces.

The dashboard draws into a fixed grid of cells through a small capability
interface and nothing becomes visible until ``flush()``:

    surface.set_cell(x, y, "#", style="bold")
    surface.flush()

Implementations:
- ``RichSurface``: renders the grid through a Rich ``Live`` display on the
  alternate screen.
- ``MemorySurface``: keeps every flushed frame in memory; used to drive the
  dashboard headlessly in tests.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from rich.console import Console
from rich.live import Live
from rich.text import Text

from loadwatch.rich_output import dashboard_unavailable_reason

logger = logging.getLogger(__name__)

Cell = tuple[str, str | None]

BLANK: Cell = (" ", None)


class SurfaceInitError(RuntimeError):
    """Raised when the terminal surface cannot be initialized."""


class Surface(ABC):
    """Fixed-size grid of styled character cells."""

    @abstractmethod
    def set_cell(self, x: int, y: int, char: str, style: str | None = None) -> None:
        """Write one cell. Out-of-bounds writes are ignored."""

    @abstractmethod
    def flush(self) -> None:
        """Make everything drawn so far visible."""

    @abstractmethod
    def size(self) -> tuple[int, int]:
        """Return (width, height) in cells."""

    @abstractmethod
    def close(self) -> None:
        """Release the terminal."""

    def draw_text(self, x: int, y: int, text: str, style: str | None = None) -> None:
        """Write ``text`` left to right starting at (x, y)."""
        for i, char in enumerate(text):
            self.set_cell(x + i, y, char, style)


class GridSurface(Surface):
    """Surface backed by an in-memory cell grid."""

    def __init__(self, width: int, height: int) -> None:
        self._width = max(1, width)
        self._height = max(1, height)
        self._cells: list[list[Cell]] = [
            [BLANK] * self._width for _ in range(self._height)
        ]

    def set_cell(self, x: int, y: int, char: str, style: str | None = None) -> None:
        if 0 <= x < self._width and 0 <= y < self._height:
            self._cells[y][x] = (char, style)

    def size(self) -> tuple[int, int]:
        return self._width, self._height

    def row_text(self, y: int) -> str:
        """Plain characters of row ``y``."""
        return "".join(char for char, _ in self._cells[y])

    def snapshot(self) -> tuple[tuple[Cell, ...], ...]:
        """Immutable copy of the current grid."""
        return tuple(tuple(row) for row in self._cells)


class MemorySurface(GridSurface):
    """Headless surface that records a frame on every flush."""

    def __init__(self, width: int = 80, height: int = 24) -> None:
        super().__init__(width, height)
        self.frames: list[tuple[tuple[Cell, ...], ...]] = []
        self.closed = False

    def flush(self) -> None:
        self.frames.append(self.snapshot())

    def close(self) -> None:
        self.closed = True

    def frame_text(self, index: int = -1) -> list[str]:
        """Plain text rows of a flushed frame, trailing spaces stripped."""
        frame = self.frames[index]
        return ["".join(char for char, _ in row).rstrip() for row in frame]


class RichSurface(GridSurface):
    """Cell grid shown through a Rich ``Live`` display.

    The live display does not auto-refresh: the grid is pushed to the
    terminal only on ``flush()``.
    """

    def __init__(
        self,
        console: Console | None = None,
        *,
        use_rich: bool | None = None,
    ) -> None:
        if use_rich is None:
            reason = dashboard_unavailable_reason()
        else:
            reason = None if use_rich else "disabled by caller"
        if reason is not None:
            raise SurfaceInitError(f"Live dashboard unavailable: {reason}")
        self.console = console or Console()
        width, height = self.console.size
        super().__init__(width, height)
        self._live: Live | None = None
        try:
            self._live = Live(
                Text(""),
                console=self.console,
                auto_refresh=False,
                screen=True,
                transient=True,
            )
            self._live.start()
        except Exception as e:
            raise SurfaceInitError(f"Failed to initialize terminal: {e}") from e
        logger.debug("Rich surface started (%dx%d)", width, height)

    def _render(self) -> Text:
        text = Text(no_wrap=True, overflow="crop")
        _, height = self.size()
        for y, row in enumerate(self._cells):
            run_chars: list[str] = []
            run_style: str | None = None
            for char, style in row:
                if style != run_style and run_chars:
                    text.append("".join(run_chars), style=run_style)
                    run_chars = []
                run_style = style
                run_chars.append(char)
            if run_chars:
                text.append("".join(run_chars), style=run_style)
            if y < height - 1:
                text.append("\n")
        return text

    def flush(self) -> None:
        if self._live is not None:
            self._live.update(self._render(), refresh=True)

    def close(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None
            logger.debug("Rich surface closed")
