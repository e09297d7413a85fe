"""Extraction and enrichment phases, in execution order."""

from src.pipeline.phases.artist_phase import ArtistPhase
from src.pipeline.phases.base import BasePhase
from src.pipeline.phases.enrichment_phase import EnrichmentPhase
from src.pipeline.phases.event_phase import EventPhase
from src.pipeline.phases.type_phase import TypePhase
from src.pipeline.phases.venue_phase import VenuePhase

__all__ = [
    "ArtistPhase",
    "BasePhase",
    "EnrichmentPhase",
    "EventPhase",
    "TypePhase",
    "VenuePhase",
]
