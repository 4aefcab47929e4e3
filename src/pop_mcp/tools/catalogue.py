"""The fixed set of tools exposed to callers."""

from collections.abc import Mapping
from types import MappingProxyType

from .base import ToolDescriptor
from .chain import BUILD_CHAIN, CALL_CHAIN, CREATE_CHAIN, TEST_CHAIN
from .contract import (
    BUILD_CONTRACT,
    CALL_CONTRACT,
    CREATE_CONTRACT,
    DEPLOY_CONTRACT,
    LIST_TEMPLATES,
    TEST_CONTRACT,
)
from .general import (
    CHECK_POP_INSTALLATION,
    CONVERT_ADDRESS,
    INSTALL_POP_INSTRUCTIONS,
    POP_HELP,
)
from .node import CLEAN_NODES, UP_INK_NODE, UP_NETWORK

# Listing order: setup, contracts, chains, nodes, utilities
_DESCRIPTORS: tuple[ToolDescriptor, ...] = (
    CHECK_POP_INSTALLATION,
    INSTALL_POP_INSTRUCTIONS,
    LIST_TEMPLATES,
    CREATE_CONTRACT,
    BUILD_CONTRACT,
    TEST_CONTRACT,
    DEPLOY_CONTRACT,
    CALL_CONTRACT,
    CREATE_CHAIN,
    BUILD_CHAIN,
    TEST_CHAIN,
    CALL_CHAIN,
    UP_INK_NODE,
    UP_NETWORK,
    CLEAN_NODES,
    CONVERT_ADDRESS,
    POP_HELP,
)

CATALOGUE: Mapping[str, ToolDescriptor] = MappingProxyType(
    {descriptor.name: descriptor for descriptor in _DESCRIPTORS}
)
