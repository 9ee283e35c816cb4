"""Terminal presentation: the image grid and the event presenter."""

from termoracle.display.console import ConsolePresenter, make_link
from termoracle.display.grid import GridRenderer, compute_layout, wrap_description

__all__ = [
    "ConsolePresenter",
    "GridRenderer",
    "compute_layout",
    "make_link",
    "wrap_description",
]
