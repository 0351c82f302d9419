"""
Timeline Cut - two-track timeline editing and FFmpeg export engine
"""

__version__ = "1.0.0"
