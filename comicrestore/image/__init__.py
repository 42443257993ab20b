"""Image handling: source loading, post-processing and QA."""

from comicrestore.image.postprocess import PostProcessor, PostProcessResult, apply_matte_compensation
from comicrestore.image.qa import QAChecker
from comicrestore.image.source import (
    SourcePair,
    find_images,
    find_mask,
    load_image,
    load_mask,
    load_pair,
)

__all__ = [
    "PostProcessor",
    "PostProcessResult",
    "QAChecker",
    "SourcePair",
    "apply_matte_compensation",
    "find_images",
    "find_mask",
    "load_image",
    "load_mask",
    "load_pair",
]
