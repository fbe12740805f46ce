"""
Scorebook - live cricket scoring and statistics engine
"""
__version__ = "0.1.0"
