"""
py-gridmap: procedural terrain generation and brush editing for grid maps.
"""

__version__ = "0.1.0"
