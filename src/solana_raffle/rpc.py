from __future__ import annotations

import json
from typing import Any, Dict, Iterator, Optional, Tuple

import httpx


class RpcClient:
    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.Client(timeout=timeout_s, transport=transport)

    def close(self) -> None:
        self.client.close()

    def _post(self, method: str, params: list) -> Dict[str, Any]:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        resp = self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise RuntimeError(f"RPC error: {data['error']}")
        return data

    def get_slot(self, commitment: str = "finalized") -> int:
        """Returns the current slot."""
        data = self._post("getSlot", [{"commitment": commitment}])
        return int(data["result"])

    def get_block_time(self, slot: int) -> int:
        """Returns the Unix timestamp for a given slot."""
        data = self._post("getBlockTime", [slot])
        if data.get("result") is None:
            raise RuntimeError(f"Timestamp not available for slot {slot}")
        return int(data["result"])

    def get_blockhash_for_slot(self, slot: int) -> str:
        data = self._post(
            "getBlock",
            [slot, {"encoding": "json", "transactionDetails": "none", "rewards": False}],
        )
        result = data.get("result")
        if not result or "blockhash" not in result:
            raise RuntimeError(f"Slot {slot}: getBlock returned no blockhash.")
        return result["blockhash"]


def _feed_locations(doc: Dict[str, Any], slot: Optional[int]) -> Iterator[Tuple[str, Any]]:
    yield "blockhash", doc
    yield "result.blockhash", doc.get("result")
    blocks = doc.get("blocks")
    if slot is not None and isinstance(blocks, dict):
        yield f"blocks[{slot}].blockhash", blocks.get(str(slot))


def load_seed_from_block_feed_file(path: str, slot_hint: Optional[int] = None) -> str:
    """
    Reads the blockhash used as draw entropy from a block feed file.

    The file holds either the bare hash or a JSON document exported by an
    indexer, with the hash under `blockhash`, `result.blockhash` or
    `blocks["<slot>"].blockhash` (the last one needs `slot_hint`). A top-level
    `slot` that disagrees with `slot_hint` is rejected.
    """
    with open(path, "r", encoding="utf-8") as f:
        text = f.read().strip()
    if text and not text.startswith("{"):
        return text

    try:
        doc = json.loads(text)
    except ValueError as e:
        raise RuntimeError(f"{path}: block feed is neither a blockhash nor JSON ({e})") from e
    if not isinstance(doc, dict):
        raise RuntimeError(f"{path}: block feed JSON must be an object")

    slot = None if slot_hint is None else int(slot_hint)
    if slot is not None and "slot" in doc and int(doc["slot"]) != slot:
        raise RuntimeError(f"{path}: block feed is for slot {doc['slot']}, expected {slot}")

    for where, node in _feed_locations(doc, slot):
        if isinstance(node, dict) and isinstance(node.get("blockhash"), str):
            return node["blockhash"]

    searched = ", ".join(where for where, _ in _feed_locations(doc, slot))
    raise RuntimeError(f"{path}: no blockhash in block feed (looked at {searched})")
