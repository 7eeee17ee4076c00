import pytest

pytest.importorskip("google.generativeai")

from duende import config, registry
from duende.pipeline.store import MongoEventStore
from duende.sources.generative import GenerativeSource
from duende.sources.scrape import DEFAULT_SELECTORS, ScrapeSource


def test_scrape_source_selected_with_selector_overrides(monkeypatch):
    monkeypatch.setattr(config, "SOURCE", "scrape")
    monkeypatch.setattr(config, "SCRAPE_URLS", ["https://agenda.example.com/flamenco"])
    monkeypatch.setenv("SCRAPE_SELECTORS", '{"link": "a.card-link"}')

    source, queries = registry.get_source()

    assert isinstance(source, ScrapeSource)
    assert queries == ["https://agenda.example.com/flamenco"]
    assert source.selectors["link"] == "a.card-link"
    assert source.selectors["date"] == DEFAULT_SELECTORS["date"]


def test_generative_source_selected_by_default(monkeypatch):
    monkeypatch.setattr(config, "SOURCE", "generative")
    monkeypatch.setattr(config, "GEMINI_API_KEY", "test-key")
    monkeypatch.setattr(config, "ARTISTS", ["Sara Baras", "Farruquito"])

    source, queries = registry.get_source()

    assert isinstance(source, GenerativeSource)
    assert queries == ["Sara Baras", "Farruquito"]


def test_get_store_uses_configured_collection(monkeypatch):
    monkeypatch.setattr(config, "MONGO_URI", "mongodb://db:27017")
    monkeypatch.setattr(config, "MONGO_DB", "DuendeDB")
    monkeypatch.setattr(config, "MONGO_COLLECTION", "events")

    store = registry.get_store()

    assert isinstance(store, MongoEventStore)
    assert (store.uri, store.database, store.collection_name) == ("mongodb://db:27017", "DuendeDB", "events")
