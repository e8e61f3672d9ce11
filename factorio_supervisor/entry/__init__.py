"""
Entry point scripts for the supervisor process.
"""
