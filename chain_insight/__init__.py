"""
Heuristic analysis pipeline for Hyperliquid transactions and blocks.
"""

__version__ = "0.1.0"
