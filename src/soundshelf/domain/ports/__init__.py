"""Domain ports (interfaces implemented by infrastructure)."""

from soundshelf.domain.ports.access import IAccessCapabilityProvider
from soundshelf.domain.ports.plugin import (
    IArtworkLoader,
    IMediaImporter,
    IMediaPlugin,
    IMetadataGrabber,
    ImportedMedia,
)
from soundshelf.domain.ports.tracing import IRequestTracer, trace_request

__all__ = [
    "IAccessCapabilityProvider",
    "IArtworkLoader",
    "IMediaImporter",
    "IMediaPlugin",
    "IMetadataGrabber",
    "IRequestTracer",
    "ImportedMedia",
    "trace_request",
]
