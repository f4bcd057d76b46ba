"""
Verify project setup is correct.
"""

import openai_orch


def test_version_exists():
    """Package has version."""
    assert hasattr(openai_orch, "__version__")
    assert openai_orch.__version__ == "0.1.0"


def test_public_api_exported():
    """Every name in __all__ is importable from the package root."""
    for name in openai_orch.__all__:
        assert hasattr(openai_orch, name), name
