"""
PatchSync Server - Models Package

Contains database models, API models and in-memory infrastructure models.
"""
