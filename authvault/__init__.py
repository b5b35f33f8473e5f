"""AuthVault: credential registration and login against a JSON user store."""

__version__ = "1.0.0"
