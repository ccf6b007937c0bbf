"""
codevec - project-scoped semantic code search.
Stores one embedding per code block and answers nearest-neighbour and exact-match queries.
"""

__version__ = "0.1.0"
