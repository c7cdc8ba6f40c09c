"""Content-addressed resource proxy for IPFS and Grove gateways."""

__version__ = "0.1.0"
