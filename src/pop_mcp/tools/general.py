"""Installation, help and utility tools."""

import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from pop_mcp.config import Settings

from .base import CommandSpec, ExecutionRecord, Success, ToolDescriptor
from .common import pop_command, report, require
from .parsers import find_address, find_version
from .schema import ToolParams

_SUBCOMMAND_WORD = re.compile(r"^[a-z][a-z0-9-]*$")

INSTALL_INSTRUCTIONS: dict[str, str] = {
    "macos": """# Installing Pop CLI on macOS

## Using Homebrew (Recommended)
```bash
brew install r0gue-io/pop-cli/pop
```

## Verify Installation
```bash
pop --version
```""",
    "linux": """# Installing Pop CLI on Linux

## Using Cargo
```bash
cargo install --force --locked pop-cli
```

## Verify Installation
```bash
pop --version
```""",
    "source": """# Building Pop CLI from Source

```bash
git clone https://github.com/r0gue-io/pop-cli.git
cd pop-cli
cargo install --path crates/pop-cli
```

## Verify Installation
```bash
pop --version
```""",
}


class CheckPopInstallationParams(ToolParams):
    pass


class InstallPopInstructionsParams(ToolParams):
    platform: Literal["macos", "linux", "source"] = Field(
        default="macos", description="Platform to install on"
    )


class PopHelpParams(ToolParams):
    command: str | None = Field(
        default=None,
        description="Subcommand to get help for (e.g., 'new contract'); omit for general help",
    )

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: str | None) -> str | None:
        if v is None:
            return None
        words = v.split()
        if not words:
            raise ValueError("Command cannot be empty")
        for word in words:
            if not _SUBCOMMAND_WORD.match(word):
                raise ValueError(f"'{word}' is not a Pop CLI subcommand name")
        return " ".join(words)


class ConvertAddressParams(ToolParams):
    address: str = Field(description="Substrate (SS58) or Ethereum (H160) address")

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Address cannot be empty")
        return v.strip()


class VersionResult(BaseModel):
    """Structured result of check_pop_installation."""

    version: str


class AddressResult(BaseModel):
    """Structured result of convert_address."""

    address: str


def finish_check_pop_installation(
    params: CheckPopInstallationParams, record: ExecutionRecord
) -> Success:
    version = require(find_version(record.output), "a version number")
    return report("Pop CLI is installed!", record, VersionResult(version=version))


def build_pop_help(params: PopHelpParams, settings: Settings) -> CommandSpec:
    words = params.command.split() if params.command else []
    return pop_command(settings, *words, "--help")


def finish_convert_address(params: ConvertAddressParams, record: ExecutionRecord) -> Success:
    converted = require(
        find_address(record.output, exclude=params.address), "a converted address"
    )
    return report(
        f"Converted address: {converted}", record, AddressResult(address=converted)
    )


CHECK_POP_INSTALLATION = ToolDescriptor(
    name="check_pop_installation",
    description="Check whether Pop CLI is installed and report its version.",
    params=CheckPopInstallationParams,
    build=lambda params, settings: pop_command(settings, "--version"),
    finish=finish_check_pop_installation,
    failure_label=(
        "Pop CLI is not installed or not working "
        "(use the install_pop_instructions tool for setup help)"
    ),
    output=VersionResult,
)

INSTALL_POP_INSTRUCTIONS = ToolDescriptor(
    name="install_pop_instructions",
    description="Get instructions for installing Pop CLI on a platform.",
    params=InstallPopInstructionsParams,
    build=lambda params, settings: None,
    finish=lambda params, record: Success(text=INSTALL_INSTRUCTIONS[params.platform]),
    failure_label="Failed to get install instructions",
)

POP_HELP = ToolDescriptor(
    name="pop_help",
    description="Show Pop CLI help, for the whole CLI or one subcommand.",
    params=PopHelpParams,
    build=build_pop_help,
    finish=lambda params, record: report("Pop CLI Help:", record),
    failure_label="Failed to get help",
)

CONVERT_ADDRESS = ToolDescriptor(
    name="convert_address",
    description="Convert between Substrate (SS58) and Ethereum (H160) address formats.",
    params=ConvertAddressParams,
    build=lambda params, settings: pop_command(settings, "convert", "address", params.address),
    finish=finish_convert_address,
    failure_label="Address conversion failed",
    output=AddressResult,
)
