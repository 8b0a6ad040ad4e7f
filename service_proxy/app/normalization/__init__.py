"""
Response normalization package.

Each upstream gets a pure function from raw body to canonical document and a
deterministic fallback document. ``ResponseNormalizer`` dispatches by
endpoint identifier.
"""
