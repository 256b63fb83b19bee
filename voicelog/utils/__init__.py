"""
Shared utility modules for voicelog.
"""
