"""Allow ``python -m markerrunner``."""

from markerrunner.cli import main

if __name__ == "__main__":
    main()
