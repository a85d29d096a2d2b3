"""
Domain services for Party Mode: rooms, players, rounds, scores and export.
"""
