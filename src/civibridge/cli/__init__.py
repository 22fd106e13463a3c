"""CLI package for civibridge.

The main Typer app is created in app.py and commands are registered from
each module on import.
"""

import civibridge.cli.commands_api  # noqa: F401, E402
import civibridge.cli.commands_records  # noqa: F401, E402
from civibridge.cli.app import app

__all__ = ["app"]
