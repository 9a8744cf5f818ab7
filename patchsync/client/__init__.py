"""
PatchSync Client Package

Command line client: reads local files, diffs them against the last synced
content and exchanges patches with a PatchSync server.
"""
