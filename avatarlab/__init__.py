"""AvatarLab edge-function service."""
__version__ = "1.0.0"
