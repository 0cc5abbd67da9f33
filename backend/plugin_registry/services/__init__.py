"""
Plugin Registry Services
Observers, upstream sources and the module integrity workflow
"""
