"""
Runtime Module

Service facade and the factory that wires it from settings.
"""

from gleaner.runtime.factory import (
    build_service,
    create_embedding_service,
    create_generator,
    create_vector_store,
)
from gleaner.runtime.service import KnowledgeService

__all__ = [
    "KnowledgeService",
    "build_service",
    "create_embedding_service",
    "create_generator",
    "create_vector_store",
]
