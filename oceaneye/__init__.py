"""Project media, YOLO detection decoding, box editing and annotation export for underwater imagery."""

__version__ = "0.2.0"