"""pop-mcp: drive the Pop CLI from an agent over the Model Context Protocol."""

__version__ = "0.1.0"
