"""SoundShelf - library consolidation and incremental discovery for local music collections."""

__version__ = "0.1.0"
