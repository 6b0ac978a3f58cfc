"""
Tests for module headers across the package
"""

import ast
from pathlib import Path

import pytest

PACKAGE_DIR = Path(__file__).resolve().parent.parent / "lifesignal"
MODULES = sorted(PACKAGE_DIR.rglob("*.py"))


@pytest.mark.parametrize("module", MODULES, ids=lambda path: str(path.relative_to(PACKAGE_DIR)))
def test_module_header(module):
    """Each header names its own file and dates, and credits no individual author."""
    docstring = ast.get_docstring(ast.parse(module.read_text()))
    assert docstring, f"{module} has no header docstring"

    fields = dict(
        line.split(": ", 1) for line in docstring.splitlines()
        if line.startswith(("File: ", "Created: ", "Last Modified: ", "Author: "))
    )
    assert fields.get("File") == module.relative_to(PACKAGE_DIR).as_posix()
    assert "Created" in fields and "Last Modified" in fields
    assert "Author" not in fields
