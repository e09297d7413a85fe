"""Graph assembly: poster fields in, deduplicated nodes and edges out."""

from src.services.assembly.graph_builder import GraphBuilder
from src.services.assembly.poster_assembler import PosterAssembler, build_poster_entity

__all__ = ["GraphBuilder", "PosterAssembler", "build_poster_entity"]
