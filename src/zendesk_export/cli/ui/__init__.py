"""
Rich display helpers for the CLI.
"""
