import os
import sys
from pathlib import Path

# add backend root to sys.path
BACKEND = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND))

os.environ.setdefault("LOG_LEVEL", "WARNING")
