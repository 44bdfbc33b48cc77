"""hnssec: self-signed TLS identity and DNSSEC-signed zone generator."""

__version__ = "0.1.0"
