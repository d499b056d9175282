"""tubesig - player-script signature and n-parameter resolution."""

__version__ = "0.1.0"
