"""Entry point for ``python -m tilescaler``."""

from tilescaler.scale.__main__ import main

if __name__ == "__main__":
    main()
