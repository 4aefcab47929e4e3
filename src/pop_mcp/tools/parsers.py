"""Extraction of structured values from Pop CLI free-text output.

Each function returns None when the value is not present; callers decide
whether absence is an error.
"""

import json
import re
from dataclasses import dataclass

# H160 contract/account address, not part of a longer hex run (e.g., a hash)
_H160 = r"0x[0-9a-fA-F]{40}(?![0-9a-fA-F])"
# SS58 address: base58 alphabet, 46-48 characters
_SS58 = r"[1-9A-HJ-NP-Za-km-z]{46,48}"
_ADDRESS_PATTERN = re.compile(rf"(?<![0-9A-Za-z])(?:{_H160}|{_SS58})(?![0-9A-Za-z])")

_VERSION_PATTERN = re.compile(r"\b(\d+\.\d+\.\d+(?:-[0-9A-Za-z.]+)?)\b")
_RESULT_LABEL = re.compile(r"\bResult:\s*(.+)$")
_WRAPPED_VALUE = re.compile(r"^(?:Ok|Some)\((.*)\)$")

# Box-drawing and prompt glyphs Pop CLI prefixes its lines with
_LINE_DECORATIONS = "│┌└├◇◆●⚙✔✅️ \t"


def _clean_line(line: str) -> str:
    """Strip decorative prefixes from a line of CLI output."""
    return line.strip().lstrip(_LINE_DECORATIONS).strip()


def find_addresses(text: str) -> list[str]:
    """All address-shaped tokens in order of appearance."""
    return _ADDRESS_PATTERN.findall(text)


def find_address(text: str, exclude: str | None = None) -> str | None:
    """First address-shaped token in the text.

    Args:
        text: CLI output
        exclude: An address to skip (e.g., the input echoed back)

    Returns:
        The address, or None if there is none
    """
    for address in find_addresses(text):
        if exclude is None or address.lower() != exclude.lower():
            return address
    return None


def find_ws_url(text: str) -> str | None:
    """First websocket URL from a line labelled 'url:'.

    Looks for lines like `│  url: ws://localhost:9944/` and returns
    `ws://localhost:9944`.
    """
    for line in text.splitlines():
        trimmed = _clean_line(line)
        if trimmed.startswith("url:") and "ws://" in trimmed:
            start = trimmed.find("ws://")
            return trimmed[start:].split()[0].rstrip("/")
    return None


def _parse_pid_list(text: str) -> list[int]:
    pids = []
    for token in text.split():
        digits = token.strip("[](),;:")
        if digits.isdigit():
            pids.append(int(digits))
    return pids


def find_pids(text: str) -> list[int]:
    """Process ids from a 'pids:' label or a 'kill -9' hint."""
    for line in text.splitlines():
        trimmed = _clean_line(line)
        if trimmed.startswith("pids:"):
            pids = _parse_pid_list(trimmed[len("pids:") :])
            if pids:
                return pids
        if "kill -9" in trimmed:
            rest = trimmed[trimmed.find("kill -9") + len("kill -9") :]
            pids = _parse_pid_list(rest)
            if pids:
                return pids
    return []


def find_version(text: str) -> str | None:
    """First semantic version number in the text."""
    match = _VERSION_PATTERN.search(text)
    return match.group(1) if match else None


@dataclass
class CallResult:
    """A value returned by a contract call.

    Attributes:
        raw: The text after the 'Result:' label
        value: Decoded boolean or integer, when the raw text is one
    """

    raw: str
    value: bool | int | None = None


def decode_value(raw: str) -> bool | int | None:
    """Decode `true`, `Ok(false)`, `Some(42)` style values."""
    text = raw.strip()
    while True:
        match = _WRAPPED_VALUE.match(text)
        if not match:
            break
        text = match.group(1).strip()

    if text == "true":
        return True
    if text == "false":
        return False
    candidate = text.replace("_", "").replace(",", "")
    if re.fullmatch(r"-?\d+", candidate):
        return int(candidate)
    return None


def find_call_result(text: str) -> CallResult | None:
    """The value after the last 'Result:' label in the output."""
    found: CallResult | None = None
    for line in text.splitlines():
        match = _RESULT_LABEL.search(_clean_line(line))
        if match:
            raw = match.group(1).strip()
            found = CallResult(raw=raw, value=decode_value(raw))
    return found


@dataclass
class NetworkEndpoints:
    """Websocket endpoints of a launched local network."""

    relay_ws: str
    chain_ws: str


def _first_ws_uri(nodes: object) -> str | None:
    if not isinstance(nodes, list):
        return None
    for node in nodes:
        if isinstance(node, dict) and isinstance(node.get("ws_uri"), str):
            return node["ws_uri"]
    return None


def _first_collator_ws(chains: object) -> str | None:
    if not isinstance(chains, list):
        return None
    for chain in chains:
        if isinstance(chain, dict):
            uri = _first_ws_uri(chain.get("collators"))
            if uri:
                return uri
    return None


def parse_network_endpoints(zombie_json: str) -> NetworkEndpoints | None:
    """Relay and parachain websocket URIs from zombie.json contents.

    The parachains entry is either a list of chains or an object mapping
    relay ids to lists of chains.
    """
    try:
        data = json.loads(zombie_json)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    relay = data.get("relay")
    relay_ws = _first_ws_uri(relay.get("nodes")) if isinstance(relay, dict) else None

    parachains = data.get("parachains")
    chain_ws = None
    if isinstance(parachains, list):
        chain_ws = _first_collator_ws(parachains)
    elif isinstance(parachains, dict):
        for chains in parachains.values():
            chain_ws = _first_collator_ws(chains)
            if chain_ws:
                break

    if not relay_ws or not chain_ws:
        return None
    return NetworkEndpoints(relay_ws=relay_ws, chain_ws=chain_ws)
