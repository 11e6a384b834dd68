"""Project Management API: projects, issues, kanban states and time tracking."""

from importlib.metadata import PackageNotFoundError, version

DISTRIBUTION_NAME = "project-management-backend"

try:
    __version__ = version(DISTRIBUTION_NAME)
except PackageNotFoundError:  # running from a source checkout
    __version__ = "0.1.0"

__all__ = ["DISTRIBUTION_NAME", "__version__"]
