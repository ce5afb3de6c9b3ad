"""
Tests for package metadata
"""

from pathlib import Path

import carbon_growth

SETUP_PY = Path(__file__).resolve().parent.parent / 'setup.py'


class TestSetup:
    """Test the setup script."""

    def test_version_matches_package(self):
        assert f"version='{carbon_growth.__version__}'" in SETUP_PY.read_text()

    def test_design_notes_not_published(self):
        text = SETUP_PY.read_text()
        assert 'DESIGN.md' not in text
        assert 'long_description' not in text
