"""
Shared fixtures: an in-memory cache and a synthetic leaf renderer, both
wrapped in Mocks so tests can count calls while real behaviour runs.
"""

import os
import sys
from unittest.mock import Mock

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(project_root)

from common.types import Layer
from tile_server.layers import LayerRegistry
from tile_server.leaf import SyntheticBlockRenderer
from tile_server.renderer import TileRenderer
from tile_server.tile_cache import MemoryTileCache


@pytest.fixture
def layers():
    return LayerRegistry([Layer(id=0, name="Base", y_from=-2, y_to=10)])


@pytest.fixture
def memory_cache():
    return MemoryTileCache()


@pytest.fixture
def cache(memory_cache):
    """Spy around a real MemoryTileCache."""
    return Mock(wraps=memory_cache)


@pytest.fixture
def leaf():
    """Spy around a synthetic renderer that has content everywhere."""
    return Mock(wraps=SyntheticBlockRenderer(world_radius=4096))


@pytest.fixture
def renderer(leaf, cache, layers):
    r = TileRenderer(leaf, cache, layers)
    yield r
    r.close()
