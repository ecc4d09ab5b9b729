"""
Map-rendering collaborators.
"""
