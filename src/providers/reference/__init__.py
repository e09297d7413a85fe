"""Reference catalog lookups used by the enrichment phase.

Three concrete implementations of IReferenceLookup
(src/interfaces/reference_lookup.py):
    - MusicBrainzLookup -- artists and releases, no key required
    - DiscogsLookup     -- releases with labels/genres (DISCOGS_USER_TOKEN)
    - TMDBLookup        -- films with director and cast (TMDB_API_KEY)
"""

from src.providers.reference.discogs_provider import DiscogsLookup
from src.providers.reference.musicbrainz_provider import MusicBrainzLookup
from src.providers.reference.tmdb_provider import TMDBLookup

__all__ = ["DiscogsLookup", "MusicBrainzLookup", "TMDBLookup"]
