"""Image previews in the editor gutter and on hover."""

__version__ = "0.15.1"
