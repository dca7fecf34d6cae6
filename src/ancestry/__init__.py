"""
Ancestry: closure-table hierarchies for arbitrary entities.

Every ancestor/descendant pair is stored explicitly with its depth, so
ancestor, descendant, depth and path lookups never recurse.
"""

__version__ = "0.1.0"
