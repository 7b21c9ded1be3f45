"""
staffbooking - book staff appointments against recurring weekly availability.
"""

__version__ = "0.1.0"
