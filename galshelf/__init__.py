"""
galshelf - visual novel library manager

Tracks locally installed visual novels, matches them against the VNDB
catalog, downloads covers and screenshots, and translates descriptions
and tags through an OpenAI-compatible model endpoint.
"""

__version__ = "0.3.0"
__author__ = "galshelf contributors"
