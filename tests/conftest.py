import sys
from pathlib import Path

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from persistkit.resolver import DirKind  # noqa: E402


class FakePlatformDirs:
    """Platform directory resolver rooted in a temp dir."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.calls = []

    def resolve(self, vendor: str, app: str, kind: DirKind) -> Path:
        self.calls.append((vendor, app, kind))
        return self.root / kind.value / vendor / app


@pytest.fixture
def platform_dirs(tmp_path: Path) -> FakePlatformDirs:
    return FakePlatformDirs(tmp_path / "platform")
