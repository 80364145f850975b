"""DNS message model, DNS/EDNS wire-format decoding and YAML configuration for DNS traffic collection."""

__version__ = "0.1.0"
__all__ = ["config", "message", "dns", "edns"]