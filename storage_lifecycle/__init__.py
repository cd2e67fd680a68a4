"""
Storage Lifecycle & Compliance Engine.
"""
__version__ = "1.0.0"
