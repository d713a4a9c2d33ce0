"""wagate: WhatsApp automation gateway."""

__version__ = "2.0.0"
