"""Put the repository root on sys.path so tests import the in-tree ``pagepress``."""

from __future__ import annotations

from pathlib import Path
import sys


_REPO_ROOT = str(Path(__file__).resolve().parent)
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)
