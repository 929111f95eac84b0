"""
schemastash: schema-governed JSON transformation and caching.
"""

__version__ = "0.1.0"
