"""
Response decoding and HTML rendering.
"""
