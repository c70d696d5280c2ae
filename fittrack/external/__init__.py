"""
Clients for third-party services FitTrack depends on.
"""
