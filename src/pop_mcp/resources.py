"""Read-only documentation resources served alongside the tools."""

import importlib.resources
from dataclasses import dataclass

TYPE_HINTS_URI = "pop://docs/type-hints"


class ResourceNotFoundError(KeyError):
    """Raised when no resource exists at a URI."""

    def __init__(self, uri: str) -> None:
        self.uri = uri
        super().__init__(uri)

    def __str__(self) -> str:
        return f"Resource not found: {self.uri}"


@dataclass(frozen=True)
class Resource:
    """A documentation resource.

    Attributes:
        uri: Address the caller reads it by
        name: Short identifier
        title: Display title
        description: What the resource covers
        filename: Bundled data file holding the content
        mime_type: Content type of the text
    """

    uri: str
    name: str
    title: str
    description: str
    filename: str
    mime_type: str = "text/plain"

    def read(self) -> str:
        """Load the resource text from package data."""
        return (
            importlib.resources.files("pop_mcp.data")
            .joinpath(self.filename)
            .read_text(encoding="utf-8")
        )


_RESOURCES: dict[str, Resource] = {
    TYPE_HINTS_URI: Resource(
        uri=TYPE_HINTS_URI,
        name="type-hints",
        title="Substrate Type Hints",
        description=(
            "Type formatting hints for call_chain arguments "
            "(MultiAddress, Option, Vec, Balance)"
        ),
        filename="type-hints.txt",
    ),
}


def list_resources() -> list[Resource]:
    """All available documentation resources."""
    return list(_RESOURCES.values())


def read_resource(uri: str) -> str:
    """Read a resource's text by URI.

    Raises:
        ResourceNotFoundError: If no resource has this URI
    """
    resource = _RESOURCES.get(uri)
    if resource is None:
        raise ResourceNotFoundError(uri)
    return resource.read()
