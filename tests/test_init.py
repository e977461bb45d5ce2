import pytest


def test_lazy_imports_and_caching():
    import bumpkit  # triggers bumpkit.__getattr__

    # First access loads and caches
    Version1 = bumpkit.Version
    from bumpkit.version import Version as RealVersion

    assert Version1 is RealVersion
    # Second access should use cached value
    assert bumpkit.Version is RealVersion
    assert "Version" in vars(bumpkit)


def test_exceptions_are_exported():
    import bumpkit
    from bumpkit.exceptions import NoChangesError

    assert bumpkit.NoChangesError is NoChangesError


def test_unknown_attribute_raises():
    import bumpkit

    with pytest.raises(AttributeError):
        getattr(bumpkit, "TotallyUnknownSymbol")
