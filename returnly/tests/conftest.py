"""
Test configuration for Returnly tests.

Puts the project root on sys.path so 'from returnly...' resolves whether or
not the package is installed, and whichever directory pytest runs from.
"""
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent.parent   # .../package/

if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))
