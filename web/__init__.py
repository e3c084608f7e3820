"""
Web layer for the Night Audit service.
"""
