"""
Host Module
Per-session platforms, session management, configuration and the server entry point.
"""
