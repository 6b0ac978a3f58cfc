"""
LifeSignal: personal safety check-ins, contact relationships and pings.

File: __init__.py
Created: 2026-10-12
Last Modified: 2026-10-12
"""

__version__ = "0.1.0"
