"""RPC/script bridge: runs external automation scripts against live nodes."""

from .bridge import ScriptBridge, default_invokers
from .invokers import (
    MAX_OUTPUT,
    InvocationResult,
    Invoker,
    JsScriptInvoker,
    ShellScriptInvoker,
    script_env,
)

__all__ = [
    "InvocationResult",
    "Invoker",
    "JsScriptInvoker",
    "MAX_OUTPUT",
    "ScriptBridge",
    "ShellScriptInvoker",
    "default_invokers",
    "script_env",
]
