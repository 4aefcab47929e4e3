"""ink! smart contract tools: create, build, test, deploy, call."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from pop_mcp.config import Settings

from .base import CommandSpec, ExecutionRecord, Success, ToolDescriptor
from .common import pop_command, report, require, signing_env
from .parsers import find_address, find_call_result
from .schema import ProjectParams, ToolParams, check_path, check_project_name

ContractTemplate = Literal[
    "standard",
    "erc20",
    "erc721",
    "erc1155",
    "dns",
    "cross-contract-calls",
    "multisig",
]

TEMPLATE_SUMMARIES: dict[str, str] = {
    "standard": "Basic flipper contract (boolean toggle)",
    "erc20": "ERC20 fungible token implementation",
    "erc721": "ERC721 NFT implementation",
    "erc1155": "ERC1155 multi-token implementation",
    "dns": "Domain Name Service contract",
    "cross-contract-calls": "Example of calling other contracts",
    "multisig": "Multi-signature wallet contract",
}

_PATH_DESCRIPTION = "Path to the contract project directory"


class ListTemplatesParams(ToolParams):
    pass


class CreateContractParams(ToolParams):
    name: str = Field(description="Contract project name (letters, digits, underscores)")
    template: ContractTemplate = Field(description="Contract template to start from")
    path: str | None = Field(
        default=None, description="Directory to create the project in"
    )
    with_frontend: bool = Field(
        default=False, description="Also scaffold a typink frontend (needs node and npm)"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return check_project_name(v, "Contract")

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str | None) -> str | None:
        return None if v is None else check_path(v)


class BuildContractParams(ProjectParams):
    path: str = Field(description=_PATH_DESCRIPTION)
    release: bool = Field(default=False, description="Build in release mode")


class ContractTestParams(ProjectParams):
    path: str = Field(description=_PATH_DESCRIPTION)
    e2e: bool = Field(default=False, description="Run end-to-end tests")


class DeployContractParams(ProjectParams):
    path: str = Field(description=_PATH_DESCRIPTION)
    constructor: str | None = Field(default=None, description="Constructor to call")
    args: list[str] | None = Field(
        default=None, description="Constructor arguments, one entry per argument"
    )
    value: str | None = Field(default=None, description="Balance to transfer on deploy")
    execute: bool = Field(
        default=False, description="Submit on-chain (false = dry run)"
    )
    suri: str | None = Field(
        default=None, description="Secret key URI of the signer (e.g., //Alice)"
    )
    url: str | None = Field(default=None, description="Node websocket URL")


class CallContractParams(ProjectParams):
    path: str = Field(description=_PATH_DESCRIPTION)
    contract: str = Field(description="Address of the deployed contract")
    message: str = Field(description="Contract message to call")
    args: list[str] | None = Field(
        default=None, description="Message arguments, one entry per argument"
    )
    value: str | None = Field(default=None, description="Balance to transfer with the call")
    execute: bool = Field(
        default=False, description="Submit a transaction (false = dry-run read)"
    )
    suri: str | None = Field(
        default=None, description="Secret key URI of the signer (e.g., //Alice)"
    )
    url: str | None = Field(default=None, description="Node websocket URL")


class DeployResult(BaseModel):
    """Structured result of deploy_contract."""

    executed: bool
    address: str | None = None


class CallContractResult(BaseModel):
    """Structured result of call_contract."""

    executed: bool
    result: str | None = None  # Raw text after 'Result:'
    value: bool | int | None = None  # Decoded result, when it is one


def list_templates_text() -> str:
    lines = ["Available ink! Contract Templates:", ""]
    for number, (name, summary) in enumerate(TEMPLATE_SUMMARIES.items(), start=1):
        lines.append(f"{number}. **{name}** - {summary}")
    return "\n".join(lines)


def build_create_contract(params: CreateContractParams, settings: Settings) -> CommandSpec:
    args = ["new", "contract", params.name, "--template", params.template]
    if params.path:
        args += ["--path", params.path]
    requires: tuple[str, ...] = ()
    if params.with_frontend:
        args += ["--with-frontend=typink", "--package-manager", "npm"]
        requires = ("node", "npm")
    return pop_command(settings, *args, requires=requires)


def finish_create_contract(params: CreateContractParams, record: ExecutionRecord) -> Success:
    return report(f"Successfully created contract: {params.name}", record)


def build_build_contract(params: BuildContractParams, settings: Settings) -> CommandSpec:
    args = ["build", "--path", params.path]
    if params.release:
        args.append("--release")
    return pop_command(settings, *args)


def build_test_contract(params: ContractTestParams, settings: Settings) -> CommandSpec:
    args = ["test", "--path", params.path]
    if params.e2e:
        args.append("--e2e")
    return pop_command(settings, *args)


def build_deploy_contract(params: DeployContractParams, settings: Settings) -> CommandSpec:
    env = signing_env(params.suri, params.execute, settings, "deploy_contract")
    url = params.url or settings.default_url

    args = ["up", params.path, "-y"]
    if params.constructor:
        args += ["--constructor", params.constructor]
    if params.args:
        args += ["--args", *params.args]
    if params.value:
        args += ["--value", params.value]
    if params.execute:
        args.append("--execute")
    if url:
        args += ["--url", url]
    if params.suri:
        args += ["--suri", params.suri]
    return pop_command(settings, *args, env=env)


def finish_deploy_contract(params: DeployContractParams, record: ExecutionRecord) -> Success:
    if not params.execute:
        return report(
            "Deployment dry run completed (use execute=true to deploy on-chain).",
            record,
            DeployResult(executed=False, address=find_address(record.output)),
        )
    address = require(find_address(record.output), "the contract address")
    return report(
        f"Contract deployed at {address}",
        record,
        DeployResult(executed=True, address=address),
    )


def build_call_contract(params: CallContractParams, settings: Settings) -> CommandSpec:
    env = signing_env(params.suri, params.execute, settings, "call_contract")
    url = params.url or settings.default_url

    args = [
        "call",
        "contract",
        "--path",
        params.path,
        "--contract",
        params.contract,
        "--message",
        params.message,
        "-y",
    ]
    if params.args:
        args += ["--args", *params.args]
    if params.value:
        args += ["--value", params.value]
    if params.suri:
        args += ["--suri", params.suri]
    if url:
        args += ["--url", url]
    if params.execute:
        args.append("--execute")
    return pop_command(settings, *args, env=env)


def finish_call_contract(params: CallContractParams, record: ExecutionRecord) -> Success:
    if params.execute:
        return report(
            "Contract call submitted!", record, CallContractResult(executed=True)
        )
    found = require(find_call_result(record.output), "a 'Result:' value")
    return report(
        f"Contract call result: {found.raw}",
        record,
        CallContractResult(executed=False, result=found.raw, value=found.value),
    )


LIST_TEMPLATES = ToolDescriptor(
    name="list_templates",
    description="List the ink! contract templates available to create_contract.",
    params=ListTemplatesParams,
    build=lambda params, settings: None,
    finish=lambda params, record: Success(text=list_templates_text()),
    failure_label="Failed to list templates",
)

CREATE_CONTRACT = ToolDescriptor(
    name="create_contract",
    description="Create a new ink! smart contract project from a template.",
    params=CreateContractParams,
    build=build_create_contract,
    finish=finish_create_contract,
    failure_label="Failed to create contract",
)

BUILD_CONTRACT = ToolDescriptor(
    name="build_contract",
    description="Build an ink! smart contract project.",
    params=BuildContractParams,
    build=build_build_contract,
    finish=lambda params, record: report("Build successful!", record),
    failure_label="Build failed",
)

TEST_CONTRACT = ToolDescriptor(
    name="test_contract",
    description="Run unit tests (or end-to-end tests) of an ink! contract project.",
    params=ContractTestParams,
    build=build_test_contract,
    finish=lambda params, record: report("Tests completed!", record),
    failure_label="Tests failed",
)

DEPLOY_CONTRACT = ToolDescriptor(
    name="deploy_contract",
    description=(
        "Deploy an ink! contract. Dry run by default; with execute=true the "
        "contract is instantiated on-chain and its address returned."
    ),
    params=DeployContractParams,
    build=build_deploy_contract,
    finish=finish_deploy_contract,
    failure_label="Deployment failed",
    output=DeployResult,
)

CALL_CONTRACT = ToolDescriptor(
    name="call_contract",
    description=(
        "Call a message on a deployed ink! contract. Dry-run reads return the "
        "decoded result; execute=true submits a signed transaction."
    ),
    params=CallContractParams,
    build=build_call_contract,
    finish=finish_call_contract,
    failure_label="Contract call failed",
    output=CallContractResult,
)
