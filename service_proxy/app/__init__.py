"""
TropicsTracker weather data proxy.
"""
