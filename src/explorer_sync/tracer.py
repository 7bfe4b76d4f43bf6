"""Structural decoding of debug_traceTransaction struct logs."""

from typing import Any, Dict, List, Optional

CALL_OPS = ("CALL", "CALLCODE", "DELEGATECALL", "STATICCALL")
CREATE_OPS = ("CREATE", "CREATE2")


def _stack_word(stack: List[str], depth_from_top: int) -> Optional[int]:
    if len(stack) <= depth_from_top:
        return None
    return int(stack[-1 - depth_from_top], 16)


def _read_memory(memory: List[str], offset: int, length: int) -> str:
    data = "".join(memory)
    start = offset * 2
    return "0x" + data[start:start + length * 2]


def _to_address(word: Optional[int]) -> Optional[str]:
    if word is None:
        return None
    return "0x" + format(word & ((1 << 160) - 1), "040x")


def _decode_call(log: Dict[str, Any]) -> Dict[str, Any]:
    op = log["op"]
    stack = log.get("stack") or []
    memory = log.get("memory") or []

    # CALL and CALLCODE carry a value word, the others do not
    has_value = op in ("CALL", "CALLCODE")
    args_index = 3 if has_value else 2

    step: Dict[str, Any] = {
        "op": op,
        "depth": log.get("depth"),
        "address": _to_address(_stack_word(stack, 1)),
    }
    if has_value:
        value = _stack_word(stack, 2)
        step["value"] = str(value) if value is not None else None

    offset = _stack_word(stack, args_index)
    length = _stack_word(stack, args_index + 1)
    if offset is not None and length is not None and memory:
        step["input"] = _read_memory(memory, offset, length)

    return step


def parse_trace(to_address: Optional[str], trace: Optional[Dict[str, Any]], provider=None) -> List[Dict[str, Any]]:
    """
    Reduce a raw opcode trace to its call and create steps.

    Without ABIs this is a structural decode: each step records the opcode,
    call depth, target address, value and calldata when they can be read
    from the stack and memory.

    Args:
        to_address: Recipient of the traced transaction
        trace: debug_traceTransaction result, or None if unavailable
        provider: Node provider, accepted for decoders that fetch extra data

    Returns:
        List of step dicts, empty if there is no trace
    """
    if not trace:
        return []

    steps: List[Dict[str, Any]] = []
    for log in trace.get("structLogs") or []:
        op = log.get("op")
        if op in CALL_OPS:
            steps.append(_decode_call(log))
        elif op in CREATE_OPS:
            steps.append({"op": op, "depth": log.get("depth")})

    return [{k: v for k, v in step.items() if v is not None} for step in steps]
