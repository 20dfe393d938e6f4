import os
import sys

# Make the project root and this directory importable without an install
ROOT = os.path.dirname(os.path.abspath(__file__))
PROJ = os.path.abspath(os.path.join(ROOT, os.pardir))
for path in (PROJ, ROOT):
    if path not in sys.path:
        sys.path.insert(0, path)
