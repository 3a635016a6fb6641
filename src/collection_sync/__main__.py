"""Allow ``python -m collection_sync``."""

from collection_sync.cli import main

if __name__ == "__main__":
    main()
