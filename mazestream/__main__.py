"""Allow ``python -m mazestream``."""
from .cli import main

raise SystemExit(main())
