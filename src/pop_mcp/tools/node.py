"""Local node tools: launch an ink! node or a network, and stop nodes."""

import tempfile
import time
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from pop_mcp.config import Settings

from .base import (
    CommandSpec,
    ExecutionRecord,
    ExtractionError,
    LaunchWatch,
    ReadySignal,
    Success,
    ToolDescriptor,
)
from .common import pop_command, report, require
from .parsers import find_pids, find_ws_url, parse_network_endpoints
from .schema import ProjectParams, ToolParams


class UpInkNodeParams(ToolParams):
    ink_node_port: int | None = Field(
        default=None, ge=1, le=65535, description="Port for the ink! node RPC"
    )
    eth_rpc_port: int | None = Field(
        default=None, ge=1, le=65535, description="Port for the Ethereum RPC adapter"
    )


class UpNetworkParams(ProjectParams):
    path: str = Field(description="Path to the network configuration file (e.g., network.toml)")
    verbose: bool = Field(default=False, description="Show detailed launch output")
    timeout: int | None = Field(
        default=None,
        ge=1,
        le=3600,
        description="Seconds to wait for the network to come up (default: 300)",
    )


class CleanNodesParams(ToolParams):
    pids: list[int] | None = Field(default=None, description="Process ids of nodes to stop")
    all: bool = Field(default=False, description="Stop every running node")

    @model_validator(mode="after")
    def validate_target(self) -> "CleanNodesParams":
        if self.all and self.pids:
            raise ValueError("give either pids or all=true, not both")
        if not self.all and not self.pids:
            raise ValueError("give pids to stop, or all=true")
        return self


class InkNodeResult(BaseModel):
    """Structured result of up_ink_node."""

    url: str
    pids: list[int] = Field(default_factory=list)


class NetworkResult(BaseModel):
    """Structured result of up_network."""

    relay_ws: str
    chain_ws: str
    zombie_json: str
    base_dir: str
    pid: int
    log_file: str | None = None


class ZombieWatch:
    """Readiness check for a network launch.

    The network is ready once a zombie.json newer than the launch, with
    both relay and parachain endpoints, appears in a zombie-* directory.
    """

    def __init__(self, search_dir: Path | None = None) -> None:
        self.search_dir = search_dir or Path(tempfile.gettempdir())
        self._since: float | None = None

    def __call__(self, output: str) -> ReadySignal | None:
        if self._since is None:
            # Allow for coarse filesystem timestamps
            self._since = time.time() - 1.0

        newest = self._newest_zombie_json()
        if newest is None:
            return None
        try:
            contents = newest.read_text(encoding="utf-8")
        except OSError:
            return None
        if parse_network_endpoints(contents) is None:
            return None
        return ReadySignal(source=str(newest), payload=contents)

    def _newest_zombie_json(self) -> Path | None:
        newest: tuple[float, Path] | None = None
        for candidate in self.search_dir.glob("zombie-*/zombie.json"):
            try:
                modified = candidate.stat().st_mtime
            except OSError:
                continue
            if self._since is not None and modified < self._since:
                continue
            if newest is None or modified > newest[0]:
                newest = (modified, candidate)
        return newest[1] if newest else None


def build_up_ink_node(params: UpInkNodeParams, settings: Settings) -> CommandSpec:
    args = ["up", "ink-node", "-y", "--detach"]
    if params.ink_node_port is not None:
        args += ["--ink-node-port", str(params.ink_node_port)]
    if params.eth_rpc_port is not None:
        args += ["--eth-rpc-port", str(params.eth_rpc_port)]
    return pop_command(settings, *args)


def finish_up_ink_node(params: UpInkNodeParams, record: ExecutionRecord) -> Success:
    output = record.output
    url = require(find_ws_url(output), "the node websocket URL")
    return report(
        f"ink! node running at {url}",
        record,
        InkNodeResult(url=url, pids=find_pids(output)),
    )


def build_up_network(params: UpNetworkParams, settings: Settings) -> CommandSpec:
    args = ["up", "network", params.path, "-y"]
    if params.verbose:
        args.append("--verbose")
    return pop_command(
        settings,
        *args,
        timeout=params.timeout or settings.executor.launch_timeout,
        launch=LaunchWatch(ready=ZombieWatch()),
    )


def finish_up_network(params: UpNetworkParams, record: ExecutionRecord) -> Success:
    if record.ready is None or record.pid is None:
        raise ExtractionError("the network exited before reporting its endpoints")
    endpoints = require(
        parse_network_endpoints(record.ready.payload), "relay and chain endpoints"
    )
    zombie_json = record.ready.source
    result = NetworkResult(
        relay_ws=endpoints.relay_ws,
        chain_ws=endpoints.chain_ws,
        zombie_json=zombie_json,
        base_dir=str(Path(zombie_json).parent),
        pid=record.pid,
        log_file=record.log_file,
    )
    lines = [
        f"base_dir: {result.base_dir}",
        f"zombie_json: {result.zombie_json}",
        f"relay_ws: {result.relay_ws}",
        f"chain_ws: {result.chain_ws}",
        f"pop_pid: {result.pid}",
    ]
    if result.log_file:
        lines.append(f"log_file: {result.log_file}")
    details = "\n".join(lines)
    return report(f"Network is up!\n\n{details}", record, result)


def build_clean_nodes(params: CleanNodesParams, settings: Settings) -> CommandSpec:
    if params.all:
        return pop_command(settings, "clean", "node", "--all")
    return pop_command(
        settings, "clean", "node", "--pid", *(str(pid) for pid in params.pids or [])
    )


UP_INK_NODE = ToolDescriptor(
    name="up_ink_node",
    description=(
        "Start a local ink! node in the background and return its websocket URL "
        "and process ids."
    ),
    params=UpInkNodeParams,
    build=build_up_ink_node,
    finish=finish_up_ink_node,
    failure_label="Failed to launch ink! node",
    output=InkNodeResult,
)

UP_NETWORK = ToolDescriptor(
    name="up_network",
    description=(
        "Launch a local network from a network configuration file and wait "
        "(up to timeout seconds) until its endpoints are available. Endpoints come "
        "from the newest zombie.json written after the launch, so run one network "
        "launch at a time."
    ),
    params=UpNetworkParams,
    build=build_up_network,
    finish=finish_up_network,
    failure_label="Failed to launch network",
    output=NetworkResult,
)

CLEAN_NODES = ToolDescriptor(
    name="clean_nodes",
    description="Stop locally running nodes, by process id or all of them.",
    params=CleanNodesParams,
    build=build_clean_nodes,
    finish=lambda params, record: report("Nodes cleaned!", record),
    failure_label="Failed to clean nodes",
)
