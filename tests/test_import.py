"""Basic import tests to verify package structure."""


def test_import_pmfint():
    """Verify main package imports."""
    import pmfint
    assert pmfint.__version__ == "0.1.0"


def test_import_core():
    """Verify core module structure exists."""
    from pmfint import core
    assert hasattr(core, "__doc__")
    assert hasattr(core, "Grid")


def test_import_integrate():
    """Verify integrate module structure exists."""
    from pmfint import integrate
    assert hasattr(integrate, "PotentialIntegrator")


def test_import_viz():
    """Verify viz module structure exists."""
    from pmfint import viz
    assert hasattr(viz, "plot_pmf")
