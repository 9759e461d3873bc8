"""Event ticket issuance, door verification and holder notifications."""

__version__ = "0.1.0"
