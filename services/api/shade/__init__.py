"""
Shade Party Mode API.

Backend for the multiplayer "Party Mode" of the Shade colour-matching game.
"""
__version__ = "1.0.0"
