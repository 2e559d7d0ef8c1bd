"""Settings for the wallet passes project.

Each concern lives in its own module; values come from the environment
through python-decouple.
"""

from .base import *  # noqa: F401,F403
from .observability import *  # noqa: F401,F403
from .wallet import *  # noqa: F401,F403
