"""
Debrief - meeting audio recorder.

Records microphone and/or system audio by supervising an external recorder
(the native macOS helper or FFmpeg).
"""

__version__ = '0.3.0'
