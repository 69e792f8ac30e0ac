"""BMCMS live notification delivery: store, poller, push stream and reference service."""

__version__ = "0.1.0"
