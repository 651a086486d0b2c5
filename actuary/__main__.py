"""Allow running the audit tool with `python -m actuary`."""

import sys

from actuary.cli import main

if __name__ == "__main__":
    sys.exit(main())
