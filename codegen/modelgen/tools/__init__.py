"""
Command line tools for the entity model generator.
"""
