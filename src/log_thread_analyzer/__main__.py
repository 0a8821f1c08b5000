"""Module entrypoint.

Allows:
    python -m log_thread_analyzer
"""

from __future__ import annotations

from log_thread_analyzer.cli import main

if __name__ == "__main__":
    main()
