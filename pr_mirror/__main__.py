"""Allow ``python -m pr_mirror``."""

from .main import main

main()
