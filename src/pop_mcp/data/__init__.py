"""Bundled data files for pop-mcp.

markers.toml holds the failure markers for the Pop CLI release the tools
were written against; type-hints.txt is served as a documentation resource.
"""
