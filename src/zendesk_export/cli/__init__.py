"""
Command-line interface for zendesk-export.
"""
