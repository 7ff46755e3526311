import sys
from pathlib import Path

# Keep the repository root importable so VEZEPyNotify resolves without an editable install
ROOT_DIR = Path(__file__).resolve().parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))
