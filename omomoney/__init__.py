"""
OMOMoney - Source Package

Data-access core of a personal finance tracker: users, shared groups,
categories, entries and their line items.

DESIGN PRINCIPLES:
1. Reads go through the cache, writes invalidate it
2. The store is the source of truth, the cache is disposable
3. Store failures surface unchanged to the caller
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "OMOMoney Team"
