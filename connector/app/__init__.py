"""
CIAM API connector service.
"""
