"""Export SonarQube issues to a static HTML report."""

__version__ = "1.0.0"
