import sys
from pathlib import Path
import os

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("ATELIER_DESIGN_STORE_DIR", "/tmp/atelier-test-designs")

from atelier.persistence.service import InMemoryDesignStore, set_design_store  # noqa: E402

set_design_store(InMemoryDesignStore())
