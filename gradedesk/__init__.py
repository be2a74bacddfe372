"""gradedesk: grade computation and analytics for instructor exam portals."""

__version__ = "0.1.0"
