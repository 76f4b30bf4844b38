"""Test common package basics."""

import marketflow_common


def test_version():
    """Test that version is defined."""
    assert hasattr(marketflow_common, "__version__")
    assert isinstance(marketflow_common.__version__, str)
    assert marketflow_common.__version__ == "1.0.0"
