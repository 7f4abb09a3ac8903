"""
Configuration package.

Environment settings, logging and business constants.
"""
