from __future__ import annotations

from datalens.cli import main


if __name__ == "__main__":
    main()
