"""Travel Desk - session-authenticated live chat backend for travel agency operations."""

__version__ = "1.0.0"
