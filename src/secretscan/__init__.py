"""SecretScan: detect hard-coded secrets before they reach version control."""

__version__ = "1.0.0"
