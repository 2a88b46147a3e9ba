"""
Farmer Assistant: local web client for the crop advisory cloud backend.
"""

__version__ = "0.1.0"
