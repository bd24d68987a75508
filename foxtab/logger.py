"""
FoxTab - Logging
Routes stdlib logging through rich so diagnostics match the console output.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


_HANDLER_NAME = "foxtab-rich"


def configure_logging(verbose: bool = False, console: Console = None) -> logging.Logger:
    """Install the rich handler on the root logger once; later calls only change the level."""
    root = logging.getLogger()
    level = logging.DEBUG if verbose else logging.INFO

    if not any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root.addHandler(handler)

    root.setLevel(level)
    return root
