"""Document pinning and on-chain anchoring: API server and upload client."""

__version__ = "0.1.0"
