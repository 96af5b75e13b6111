"""Share-link access control for folders and files."""

__version__ = "0.1.0"
