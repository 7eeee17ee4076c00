from duende import config
from duende.pipeline.store import MongoEventStore
from duende.sources.generative import GenerativeSource
from duende.sources.scrape import ScrapeSource


def get_source(log=print):
    """Build the configured event source and the queries it runs over."""
    if config.SOURCE == "scrape":
        source = ScrapeSource(selectors=config.load_selectors(), log=log)
        return source, config.SCRAPE_URLS

    return GenerativeSource(log=log), config.ARTISTS


def get_store():
    return MongoEventStore(config.MONGO_URI, config.MONGO_DB, config.MONGO_COLLECTION)
