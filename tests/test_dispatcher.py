"""Tests for the tool dispatcher."""

import asyncio
import logging

import pytest
from conftest import ALICE, ScriptedExecutor, create_scripted_executor

from pop_mcp.config import MarkerSet, MarkerTable
from pop_mcp.tools.base import (
    CommandSpec,
    ErrorKind,
    ExecutionRecord,
    Failure,
    Success,
    ToolCall,
    UnknownToolError,
)
from pop_mcp.tools.catalogue import CATALOGUE

REQUIRED_FIELDS = [
    (name, field)
    for name, descriptor in CATALOGUE.items()
    for field, info in descriptor.params.model_fields.items()
    if info.is_required()
]

CREATE_CHAIN = {"name": "mychain", "provider": "pop", "template": "r0gue-io/base-parachain"}

ENUM_CASES = [
    ("create_contract", "template", {"name": "Demo", "template": "erc20"}),
    ("create_chain", "provider", CREATE_CHAIN),
    ("create_chain", "template", CREATE_CHAIN),
    ("install_pop_instructions", "platform", {}),
]


class TestLookup:
    """Test tool lookup."""

    def test_descriptors_cover_catalogue(self, make_dispatcher):
        dispatcher = make_dispatcher()
        names = [d.name for d in dispatcher.descriptors()]

        assert names == list(CATALOGUE)
        assert len(names) == 17

    def test_get_unknown_raises(self, make_dispatcher):
        with pytest.raises(UnknownToolError):
            make_dispatcher().get("does_not_exist")

    def test_catalogue_is_read_only(self):
        with pytest.raises(TypeError):
            CATALOGUE["extra"] = CATALOGUE["pop_help"]  # type: ignore[index]

    @pytest.mark.asyncio
    async def test_unknown_tool_spawns_nothing(self, make_dispatcher):
        """An unknown tool fails without executing anything."""
        executor = create_scripted_executor()
        outcome = await make_dispatcher(executor).dispatch("does_not_exist", {})

        assert isinstance(outcome, Failure)
        assert outcome.kind == ErrorKind.UNKNOWN_TOOL
        assert "does_not_exist" in outcome.text
        assert executor.specs == []


class TestValidation:
    """Test that invalid calls never reach the executor."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("tool", "field"), REQUIRED_FIELDS)
    async def test_missing_required_field(self, make_dispatcher, tool, field):
        """Leaving out any required field is rejected before spawning."""
        executor = create_scripted_executor()
        outcome = await make_dispatcher(executor).dispatch(tool, {})

        assert outcome.kind == ErrorKind.INVALID_INPUT
        assert f"'{field}': field required" in outcome.text
        assert executor.specs == []

    def test_required_fields_found(self):
        assert {tool for tool, _ in REQUIRED_FIELDS} == {
            "create_contract",
            "build_contract",
            "test_contract",
            "deploy_contract",
            "call_contract",
            "create_chain",
            "build_chain",
            "test_chain",
            "up_network",
            "convert_address",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("tool", "field", "arguments"), ENUM_CASES)
    async def test_value_outside_enum(self, make_dispatcher, tool, field, arguments):
        """A value outside a field's allowed set is rejected before spawning."""
        executor = create_scripted_executor()
        outcome = await make_dispatcher(executor).dispatch(
            tool, {**arguments, field: "not-a-choice"}
        )

        assert outcome.kind == ErrorKind.INVALID_INPUT
        assert f"'{field}': must be one of" in outcome.text
        assert executor.specs == []

    def test_enum_cases_cover_every_enum_field(self):
        enum_fields = {
            (name, field)
            for name, descriptor in CATALOGUE.items()
            for field, schema in descriptor.input_schema()["properties"].items()
            if "enum" in schema
        }
        assert enum_fields == {(tool, field) for tool, field, _ in ENUM_CASES}

    @pytest.mark.asyncio
    async def test_missing_signing_key(self, make_dispatcher):
        """A build-time precondition failure is invalid input."""
        executor = create_scripted_executor()
        outcome = await make_dispatcher(executor).dispatch(
            "deploy_contract", {"path": "./flipper", "execute": True}
        )

        assert outcome.kind == ErrorKind.INVALID_INPUT
        assert "PRIVATE_KEY" in outcome.text
        assert executor.specs == []


class TestExecution:
    """Test calls that run commands."""

    @pytest.mark.asyncio
    async def test_create_contract(self, make_dispatcher):
        executor = create_scripted_executor(stdout="Created Demo")
        outcome = await make_dispatcher(executor).dispatch(
            "create_contract", {"name": "Demo", "template": "erc20"}
        )

        assert isinstance(outcome, Success)
        assert "Created Demo" in outcome.text
        assert len(executor.specs) == 1
        assert executor.specs[0].argv == [
            "pop",
            "new",
            "contract",
            "Demo",
            "--template",
            "erc20",
        ]

    @pytest.mark.asyncio
    async def test_failure_marker_with_zero_exit(self, make_dispatcher):
        executor = create_scripted_executor(stdout="Error: directory already exists")
        outcome = await make_dispatcher(executor).dispatch(
            "create_chain",
            {"name": "mychain", "provider": "pop", "template": "r0gue-io/base-parachain"},
        )

        assert isinstance(outcome, Failure)
        assert outcome.kind == ErrorKind.EXECUTION_FAILED
        assert "directory already exists" in outcome.text

    @pytest.mark.asyncio
    async def test_deploy_returns_address(self, make_dispatcher, signing_settings):
        executor = create_scripted_executor(
            stdout=f"The contract address is {ALICE}\n", stderr="Uploading contract..."
        )
        dispatcher = make_dispatcher(executor, settings_override=signing_settings)
        outcome = await dispatcher.dispatch(
            "deploy_contract", {"path": "./flipper", "execute": True}
        )

        assert isinstance(outcome, Success)
        assert outcome.structured["address"] == ALICE
        assert executor.specs[0].env["PRIVATE_KEY"] == "//Alice"

    @pytest.mark.asyncio
    async def test_spawn_failure(self, make_dispatcher):
        executor = create_scripted_executor(
            respond=lambda spec: ExecutionRecord(spawn_error="Command 'pop' not found")
        )
        outcome = await make_dispatcher(executor).dispatch("check_pop_installation", {})

        assert outcome.kind == ErrorKind.EXECUTION_FAILED_TO_START

    @pytest.mark.asyncio
    async def test_call_with_tool_call(self, make_dispatcher):
        executor = create_scripted_executor(stdout="Usage: pop <COMMAND>")
        outcome = await make_dispatcher(executor).call(
            ToolCall(name="pop_help", arguments={"command": "build"})
        )

        assert outcome.ok
        assert outcome.text.startswith("Pop CLI Help:")
        assert ScriptedExecutor.get_call_log()[0].args == ("build", "--help")

    @pytest.mark.asyncio
    async def test_launch_gets_abort_markers(self, make_dispatcher):
        """Network launches stop early on the configured failure markers."""
        executor = create_scripted_executor(exit_code=1)
        await make_dispatcher(executor).dispatch("up_network", {"path": "./network.toml"})

        launch = executor.specs[0].launch
        assert launch.abort_markers == ("Could not launch local network",)


class TestLocalTools:
    """Test tools answered without the executor."""

    @pytest.mark.asyncio
    async def test_list_templates_spawns_nothing(self, make_dispatcher):
        executor = create_scripted_executor()
        outcome = await make_dispatcher(executor).dispatch("list_templates", {})

        assert outcome.ok
        assert "erc20" in outcome.text
        assert executor.specs == []

    @pytest.mark.asyncio
    async def test_install_instructions_spawn_nothing(self, make_dispatcher):
        executor = create_scripted_executor()
        outcome = await make_dispatcher(executor).dispatch(
            "install_pop_instructions", {"platform": "linux"}
        )

        assert "cargo install" in outcome.text
        assert executor.specs == []


class TestRobustness:
    """Test that the dispatcher keeps serving."""

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failure(self, make_dispatcher, caplog):
        def explode(spec: CommandSpec) -> ExecutionRecord:
            raise RuntimeError("boom")

        dispatcher = make_dispatcher(create_scripted_executor(respond=explode))
        with caplog.at_level(logging.ERROR, logger="pop_mcp"):
            outcome = await dispatcher.dispatch("build_contract", {"path": "./p"})

        assert outcome.kind == ErrorKind.EXECUTION_FAILED
        assert "boom" in outcome.text

        follow_up = await make_dispatcher().dispatch("list_templates", {})
        assert follow_up.ok

    @pytest.mark.asyncio
    async def test_custom_markers(self, settings):
        """A user-supplied marker table replaces the bundled one."""
        from pop_mcp.tools.dispatcher import ToolDispatcher

        markers = MarkerTable(
            version="custom", tools={"build_contract": MarkerSet(failure=["warning: unused"])}
        )
        dispatcher = ToolDispatcher(
            executor=create_scripted_executor(stdout="warning: unused variable"),
            settings=settings,
            markers=markers,
        )
        outcome = await dispatcher.dispatch("build_contract", {"path": "./p"})

        assert not outcome.ok


class TestConcurrency:
    """Test concurrent dispatches."""

    @pytest.mark.asyncio
    async def test_concurrent_calls_do_not_interfere(self, make_dispatcher):
        """Each call gets the outcome of its own command."""
        gate = asyncio.Event()

        def respond(spec: CommandSpec) -> ExecutionRecord:
            return ExecutionRecord(stdout=f"built {spec.args[2]}".encode(), exit_code=0)

        executor = create_scripted_executor(respond=respond, gate=gate)
        dispatcher = make_dispatcher(executor)

        tasks = [
            asyncio.create_task(dispatcher.dispatch("build_contract", {"path": f"./p{n}"}))
            for n in range(5)
        ]
        while len(executor.specs) < 5:
            await asyncio.sleep(0)
        gate.set()
        outcomes = await asyncio.gather(*tasks)

        for n, outcome in enumerate(outcomes):
            assert outcome.text == f"Build successful!\n\nbuilt ./p{n}"
