"""
Tile server test suite

Structure:
- unit/: tile model, raster helpers, caches, config, the recursive renderer
- integration/: HTTP front end and the warm-up CLI end to end
"""
