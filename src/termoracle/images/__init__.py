"""Image acquisition and description pipeline.

Public API:
    ImageIdCounter -- Session-wide identifier source
    ImagePipeline -- Concurrent download + description of a URL batch
"""

from termoracle.images.pipeline import ImageIdCounter, ImagePipeline

__all__ = ["ImageIdCounter", "ImagePipeline"]
