"""Cover image processing."""

from .normalizer import CompliantImage, ImageNormalizer, UnprocessableImageError

__all__ = ["CompliantImage", "ImageNormalizer", "UnprocessableImageError"]
