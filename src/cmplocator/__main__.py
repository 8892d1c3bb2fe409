"""Allow ``python -m cmplocator``."""

from cmplocator.services.cli import main

main()
