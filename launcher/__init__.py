"""Bootstrap launcher: loads an application's runtime dependencies and runs its entry point."""

__version__ = "0.1.0"
