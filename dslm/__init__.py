"""Device security level management: request, verify and track the security levels of peer devices."""

__version__ = "0.1.0"