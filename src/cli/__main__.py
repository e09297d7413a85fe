"""Allow ``python -m src.cli`` as a shortcut for ``python -m src.cli.process``."""

from src.cli.process import main

main()
