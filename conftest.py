# conftest.py (repo root)
# Keep the repo root importable and keep test runs from writing log files.
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
root_str = str(ROOT)

if root_str not in sys.path:
    sys.path.insert(0, root_str)

os.environ["DEFENSE_LOG_DIR"] = ""
