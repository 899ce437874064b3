from pathlib import Path

import pytest

PACKAGE_DIR = Path(__file__).resolve().parent.parent / "storefront"
MODULES = sorted(p for p in PACKAGE_DIR.glob("*.py") if p.name != "__init__.py")


@pytest.mark.parametrize("path", MODULES, ids=lambda p: p.name)
def test_module_starts_with_its_path(path):
    first_line = path.read_text(encoding="utf-8").splitlines()[0]
    assert first_line == f"# storefront/{path.name}"
