"""
CountyStats - Utilities

Configuration and logging setup.
"""
