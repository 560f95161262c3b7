"""
CLI support utilities.
"""
