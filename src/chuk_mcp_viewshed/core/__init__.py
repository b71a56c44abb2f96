"""Viewshed engine core: tiling, decoding, caching, ray casting, coverage."""
