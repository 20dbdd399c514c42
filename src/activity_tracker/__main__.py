"""Allow running as ``python -m activity_tracker``."""

from activity_tracker.cli import main

main()
