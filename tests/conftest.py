import sys
from pathlib import Path

# Add the repository root to sys.path so tests can import `jcash` and `infra`
# without installing the package.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
