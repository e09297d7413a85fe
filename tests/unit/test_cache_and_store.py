"""Unit tests for MemoryCacheProvider, InMemoryGraphStore and PhaseContextStore."""

from __future__ import annotations

import pytest

from src.models.graph import GraphEntity, GraphEntityType, GraphRelation, RelationType
from src.models.pipeline import PipelinePhase, ProcessingOptions
from src.models.poster import PosterImage
from src.pipeline.context_store import PhaseContextStore
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.persistence.memory_graph_store import InMemoryGraphStore
from src.utils.errors import PersistenceError, PipelineError


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


# ======================================================================
# MemoryCacheProvider
# ======================================================================


class TestMemoryCacheProvider:
    @pytest.fixture()
    def clock(self) -> _FakeClock:
        return _FakeClock()

    @pytest.fixture()
    def cache(self, clock: _FakeClock) -> MemoryCacheProvider:
        return MemoryCacheProvider(max_size=100, ttl=300, timer=clock)

    @pytest.mark.asyncio()
    async def test_get_missing_key_returns_none(self, cache: MemoryCacheProvider) -> None:
        assert await cache.get("nonexistent") is None

    @pytest.mark.asyncio()
    async def test_set_and_get(self, cache: MemoryCacheProvider) -> None:
        await cache.set("poster_types:verified", True)
        assert await cache.get("poster_types:verified") is True

    @pytest.mark.asyncio()
    async def test_delete_removes_key(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "value1")
        await cache.delete("key1")
        assert await cache.exists("key1") is False

    @pytest.mark.asyncio()
    async def test_delete_nonexistent_is_noop(self, cache: MemoryCacheProvider) -> None:
        await cache.delete("nonexistent")

    @pytest.mark.asyncio()
    async def test_entry_expires_after_ttl(self, cache: MemoryCacheProvider, clock: _FakeClock) -> None:
        await cache.set("key1", "value1")
        clock.now = 299.0
        assert await cache.exists("key1") is True
        clock.now = 301.0
        assert await cache.exists("key1") is False
        assert await cache.get("key1") is None

    def test_ttl_property(self, cache: MemoryCacheProvider) -> None:
        assert cache.ttl == 300


# ======================================================================
# InMemoryGraphStore
# ======================================================================


def _artist(name: str) -> GraphEntity:
    return GraphEntity(name=name, entity_type=GraphEntityType.ARTIST, properties={"name": name})


class TestInMemoryGraphStore:
    @pytest.mark.asyncio()
    async def test_create_and_get(self, graph_store: InMemoryGraphStore) -> None:
        result = await graph_store.create_entities([_artist("artist_a")])
        assert result.created == ["artist_a"]
        stored = await graph_store.get_entity("artist_a")
        assert stored is not None
        assert stored.entity_type == GraphEntityType.ARTIST

    @pytest.mark.asyncio()
    async def test_existing_name_is_skipped(self, graph_store: InMemoryGraphStore) -> None:
        await graph_store.create_entities([_artist("artist_a")])
        result = await graph_store.create_entities([_artist("artist_a"), _artist("artist_b")])
        assert result.created == ["artist_b"]
        assert result.skipped == ["artist_a"]
        assert len(graph_store.entities) == 2

    @pytest.mark.asyncio()
    async def test_empty_name_rejected(self, graph_store: InMemoryGraphStore) -> None:
        with pytest.raises(PersistenceError):
            await graph_store.create_entities([_artist("")])

    @pytest.mark.asyncio()
    async def test_duplicate_relation_skipped(self, graph_store: InMemoryGraphStore) -> None:
        await graph_store.create_entities([_artist("artist_a"), _artist("artist_b")])
        relation = GraphRelation(
            from_name="artist_a", to_name="artist_b", relation_type=RelationType.PERFORMED_AT
        )
        first = await graph_store.create_relations([relation])
        second = await graph_store.create_relations([relation])
        assert len(first.created) == 1
        assert len(second.skipped) == 1
        assert len(graph_store.relations) == 1

    @pytest.mark.asyncio()
    async def test_relation_to_unknown_entity_rejected(self, graph_store: InMemoryGraphStore) -> None:
        await graph_store.create_entities([_artist("artist_a")])
        relation = GraphRelation(
            from_name="artist_a", to_name="venue_missing", relation_type=RelationType.HELD_AT
        )
        with pytest.raises(PersistenceError, match="venue_missing"):
            await graph_store.create_relations([relation])

    @pytest.mark.asyncio()
    async def test_inspection_helpers(self, graph_store: InMemoryGraphStore) -> None:
        await graph_store.create_entities(
            [
                _artist("artist_a"),
                GraphEntity(name="venue_x", entity_type=GraphEntityType.VENUE),
            ]
        )
        assert graph_store.count_by_type() == {"Artist": 1, "Venue": 1}
        assert [e.name for e in graph_store.entities_of_type(GraphEntityType.VENUE)] == ["venue_x"]
        graph_store.clear()
        assert graph_store.entities == []


# ======================================================================
# PhaseContextStore
# ======================================================================


class TestPhaseContextStore:
    @pytest.mark.asyncio()
    async def test_session_releases_on_exit(self, poster_image: PosterImage) -> None:
        store = PhaseContextStore()
        async with store.session(poster_image, ProcessingOptions(skip_review=True)) as context:
            assert context.session_id in store
            assert context.options.skip_review is True
            assert context.poster_id == poster_image.poster_id
        assert len(store) == 0

    @pytest.mark.asyncio()
    async def test_session_releases_on_exception(self, poster_image: PosterImage) -> None:
        store = PhaseContextStore()
        with pytest.raises(RuntimeError):
            async with store.session(poster_image):
                raise RuntimeError("phase blew up")
        assert store.active_sessions == []

    @pytest.mark.asyncio()
    async def test_concurrent_sessions_are_isolated(self, poster_image: PosterImage) -> None:
        store = PhaseContextStore()
        async with store.session(poster_image) as first, store.session(poster_image) as second:
            assert first.session_id != second.session_id
            first.set_field("headliner", "Artist X", 0.9, PipelinePhase.ARTIST)
            assert second.get_field("headliner") is None
            assert len(store) == 2
            assert store.get(first.session_id) is first
            assert store.get(second.session_id) is second

    def test_duplicate_session_id_rejected(self, poster_image: PosterImage) -> None:
        store = PhaseContextStore()
        store.create(poster_image, session_id="session_fixed")
        with pytest.raises(PipelineError):
            store.create(poster_image, session_id="session_fixed")

    def test_release_unknown_is_ignored(self) -> None:
        PhaseContextStore().release("session_missing")
