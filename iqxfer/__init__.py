"""Stream IQ samples between a HackRF-class transceiver and a file."""

__version__ = "0.1.0"

__all__ = ["__version__"]
