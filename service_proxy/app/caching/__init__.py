"""
Caching package for the proxy service.
"""
