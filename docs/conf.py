"""Sphinx configuration for the license-gate documentation."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from license_gate import __version__  # noqa: E402

project = "License Gate"
author = "License Gate Contributors"
copyright = f"2026, {author}"
release = __version__

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "myst_parser",
    "sphinxcontrib.mermaid",
]

napoleon_numpy_docstring = False

exclude_patterns = ["_build"]
html_theme = "sphinx_rtd_theme"

autodoc_member_order = "bysource"
autodoc_typehints = "description"

# Frozen dataclasses repeat their field docs in the generated __init__.
suppress_warnings = ["ref.python"]
