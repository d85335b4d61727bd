"""fontshelf - font upload, characteristic resolution and face activation."""

__version__ = "0.1.0"
