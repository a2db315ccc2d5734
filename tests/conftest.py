from dotenv import load_dotenv

from tests.test_fixtures import (  # noqa: F401
    chain_provider,
    fake_clock,
    graph_for_mission,
    panorama_cache,
)

# Ensure environment variables from .env are available during test collection
load_dotenv()
