"""
Concurrent batch fetcher: GET a set of URLs with a bounded worker pool
and report an MD5 digest or a classified error for each one.
"""

__version__ = "0.1.0"
