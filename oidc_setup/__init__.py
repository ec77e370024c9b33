"""Configure GitHub Actions OIDC trust (workload identity federation) against Azure."""

__version__ = "1.0.0"
