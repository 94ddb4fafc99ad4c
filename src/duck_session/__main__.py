"""Allow ``python -m duck_session``."""

from duck_session.adapters.inbound.cli import main

raise SystemExit(main())
