"""
Images Module - Black Box Interface

Purpose: Read image names, tags and tag metadata from a registry
Interface: images.list, images.tags, images.image operations
Hidden: Registry HTTP API, caching

Can be replaced with any registry implementing ImageRepository.
"""

from . import module as operations
from .module import ImagesModule, declare
from .repository import ImageRepository

__all__ = ["ImageRepository", "ImagesModule", "declare", "operations"]
