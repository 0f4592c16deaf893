# Import all handlers so they register themselves.
from . import engagement_evaluate  # noqa: F401
from . import insights_refresh  # noqa: F401
from . import reminder_sweep  # noqa: F401
