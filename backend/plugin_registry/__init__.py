"""
Plugin Registry
Storage layer of a plugin registry: plugin metadata stores, pagination
cursors and hash pinning for module archive downloads.
"""

__version__ = "1.0.0"
