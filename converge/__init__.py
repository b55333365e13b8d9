"""converge — declarative local machine configuration."""

__version__ = "0.1.0"
