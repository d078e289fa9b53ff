"""
Field mapping: configuration loading, value conversion and payload building.
"""

from .coercion import convert
from .mapping_config import DEFAULT_MAPPING_PATH, FieldMappingBuilder, FieldMappingLoader, build_resolver
from .payload import PayloadBuilder

__all__ = [
    "DEFAULT_MAPPING_PATH",
    "FieldMappingBuilder",
    "FieldMappingLoader",
    "PayloadBuilder",
    "build_resolver",
    "convert",
]
