"""Allow running azfleet as ``python -m azfleet``."""

from azfleet.cli import main

if __name__ == "__main__":
    main()
