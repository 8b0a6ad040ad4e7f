"""
Rate limiting package for the proxy service.
"""
