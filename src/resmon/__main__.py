"""Allow ``python -m resmon``."""

from resmon.app import main

main()
