"""Parachain tools: create, build, test, call."""

from typing import Literal

from pydantic import Field, field_validator, model_validator

from pop_mcp.config import Settings
from pop_mcp.resources import TYPE_HINTS_URI, read_resource

from .base import CommandSpec, ExecutionRecord, Success, ToolDescriptor
from .common import pop_command, report, resolve_url
from .schema import ProjectParams, ToolParams, check_path, check_project_name

ChainProvider = Literal["pop", "openzeppelin", "parity"]

ChainTemplate = Literal[
    "r0gue-io/base-parachain",
    "r0gue-io/assets-parachain",
    "r0gue-io/contracts-parachain",
    "openzeppelin/generic-template",
    "openzeppelin/evm-template",
    "paritytech/polkadot-sdk-parachain-template",
]

# Template namespace each provider publishes under
PROVIDER_PREFIXES: dict[str, str] = {
    "pop": "r0gue-io/",
    "openzeppelin": "openzeppelin/",
    "parity": "paritytech/",
}

_PATH_DESCRIPTION = "Path to the chain project directory"


class CreateChainParams(ToolParams):
    name: str = Field(description="Chain project name (letters, digits, underscores)")
    provider: ChainProvider = Field(description="Template provider")
    template: ChainTemplate = Field(
        description="Template, which must belong to the chosen provider"
    )
    symbol: str | None = Field(
        default=None, description="Native token symbol (pop templates only)"
    )
    decimals: int | None = Field(
        default=None, ge=0, le=255, description="Native token decimals (pop templates only)"
    )
    path: str | None = Field(
        default=None, description="Directory to create the project in"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return check_project_name(v, "Chain")

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str | None) -> str | None:
        return None if v is None else check_path(v)

    @model_validator(mode="after")
    def validate_template_provider(self) -> "CreateChainParams":
        prefix = PROVIDER_PREFIXES[self.provider]
        if not self.template.startswith(prefix):
            raise ValueError(
                f"Template '{self.template}' is not provided by '{self.provider}' "
                f"(expected a '{prefix}...' template)"
            )
        return self


class BuildChainParams(ProjectParams):
    path: str = Field(description=_PATH_DESCRIPTION)
    release: bool = Field(default=True, description="Build in release mode")


class ChainTestParams(ProjectParams):
    path: str = Field(description=_PATH_DESCRIPTION)


class CallChainParams(ToolParams):
    url: str | None = Field(default=None, description="Chain websocket URL")
    pallet: str | None = Field(default=None, description="Pallet name")
    function: str | None = Field(
        default=None, description="Extrinsic, storage item or constant to use"
    )
    args: list[str] | None = Field(
        default=None,
        description=f"Arguments, one entry per argument (see {TYPE_HINTS_URI})",
    )
    sudo: bool = Field(default=False, description="Dispatch through the sudo pallet")
    metadata: bool = Field(
        default=False,
        description="List pallets (or a pallet's items) instead of calling",
    )

    @model_validator(mode="after")
    def validate_mode(self) -> "CallChainParams":
        if self.metadata:
            extras = [
                name
                for name, given in (
                    ("function", self.function is not None),
                    ("args", self.args is not None),
                    ("sudo", self.sudo),
                )
                if given
            ]
            if extras:
                raise ValueError(
                    f"metadata mode does not accept: {', '.join(extras)}"
                )
        else:
            missing = [
                name
                for name, value in (("pallet", self.pallet), ("function", self.function))
                if not value
            ]
            if missing:
                raise ValueError(
                    f"call mode requires: {', '.join(missing)} (or set metadata=true)"
                )
        return self


def build_create_chain(params: CreateChainParams, settings: Settings) -> CommandSpec:
    args = [
        "new",
        "chain",
        params.name,
        params.provider,
        "--template",
        params.template,
    ]
    if params.symbol:
        args += ["--symbol", params.symbol]
    if params.decimals is not None:
        args += ["--decimals", str(params.decimals)]
    return pop_command(settings, *args, cwd=params.path)


def finish_create_chain(params: CreateChainParams, record: ExecutionRecord) -> Success:
    return report(
        f"Successfully created chain project: {params.name}\n\n"
        "Next steps:\n"
        f"1. cd {params.name}\n"
        "2. pop build --release\n"
        "3. pop up network -f ./network.toml",
        record,
    )


def build_build_chain(params: BuildChainParams, settings: Settings) -> CommandSpec:
    args = ["build", "--path", params.path]
    if params.release:
        args.append("--release")
    return pop_command(settings, *args)


def build_test_chain(params: ChainTestParams, settings: Settings) -> CommandSpec:
    return pop_command(settings, "test", "--path", params.path)


def build_call_chain(params: CallChainParams, settings: Settings) -> CommandSpec:
    url = resolve_url(params.url, settings, "call_chain")

    if params.metadata:
        args = ["call", "chain", "--url", url, "--metadata"]
        if params.pallet:
            args += ["--pallet", params.pallet]
        return pop_command(settings, *args)

    # Extrinsics are signed with the configured key, when there is one
    args = [
        "call",
        "chain",
        "--url",
        url,
        "--pallet",
        params.pallet,
        "--function",
        params.function,
    ]
    if params.args:
        args += ["--args", *params.args]
    if params.sudo:
        args.append("--sudo")
    args.append("-y")
    return pop_command(settings, *args, env=settings.signing_env)


def finish_call_chain(params: CallChainParams, record: ExecutionRecord) -> Success:
    if params.metadata:
        hints = read_resource(TYPE_HINTS_URI)
        return Success(text=f"Chain metadata\n\n{record.output}\n\n{hints}")
    return report("Chain call successful!", record)


CREATE_CHAIN = ToolDescriptor(
    name="create_chain",
    description=(
        "Create a new parachain project. Templates: r0gue-io/* (provider pop), "
        "openzeppelin/* (provider openzeppelin), paritytech/* (provider parity)."
    ),
    params=CreateChainParams,
    build=build_create_chain,
    finish=finish_create_chain,
    failure_label="Failed to create chain",
)

BUILD_CHAIN = ToolDescriptor(
    name="build_chain",
    description="Build a parachain project (release mode by default).",
    params=BuildChainParams,
    build=build_build_chain,
    finish=lambda params, record: report("Chain build successful!", record),
    failure_label="Chain build failed",
)

TEST_CHAIN = ToolDescriptor(
    name="test_chain",
    description="Run the tests of a parachain project.",
    params=ChainTestParams,
    build=build_test_chain,
    finish=lambda params, record: report("Tests completed!", record),
    failure_label="Tests failed",
)

CALL_CHAIN = ToolDescriptor(
    name="call_chain",
    description=(
        "Call an extrinsic, query storage or read a constant on a chain. "
        "With metadata=true, list the pallets (or one pallet's items) instead."
    ),
    params=CallChainParams,
    build=build_call_chain,
    finish=finish_call_chain,
    failure_label="Chain call failed",
    marker_key=lambda params: "call_chain.metadata" if params.metadata else "call_chain",
)
