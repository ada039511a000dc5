"""Entry point for the Day Spent Well tracker.

Running this file is equivalent to the installed ``daywell`` command: it
parses the command line and drives the tracker defined in ``daywell``.
Running sessions are kept in the database, so each invocation picks up
where the previous one left off.
"""

import sys

from daywell.cli import main


if __name__ == "__main__":
    sys.exit(main())
