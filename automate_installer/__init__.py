"""AutoMate installer: provisions the AutoChat / AutoHub / AutoMem local stack."""

__version__ = "0.1.0"
