"""tspipe-cli: Command line front end for tspipe.

Provides the ``tspipe`` command with build, watch and validate subcommands.
"""

from __future__ import annotations

__version__ = "0.1.0"
