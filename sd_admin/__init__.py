"""
SD Admin module.

Command line tool for maintaining the models database.
"""
