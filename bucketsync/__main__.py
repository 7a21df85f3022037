"""Allow running bucketsync as ``python -m bucketsync``."""

from .cli import main

if __name__ == "__main__":
    main()
