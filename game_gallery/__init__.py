# Game Gallery backend package
# Shared game list persistence (GitHub contents API with compare-and-swap) and a
# TTL cache in front of Steam store search.

__version__ = "0.3.0"
