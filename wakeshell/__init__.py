"""wakeshell - wake a stopped cloud dev machine, shell into it, stop it again."""

__version__ = "0.3.0"
