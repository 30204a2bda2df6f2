"""Allow ``python -m edelivery``."""

from edelivery.cli.main import main

main()
