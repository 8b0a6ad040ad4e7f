"""
Proxy domain package.

Holds the canonical output records and the request validation policy.
"""
