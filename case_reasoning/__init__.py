"""Case reasoning core: entity resolution, contradiction detection and suspicion scoring."""

__version__ = "0.1.0"
