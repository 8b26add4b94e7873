"""Execution plans and bundler calldata.

Module structure:
- plan.py: route normalization, wrap operations, use-all-balance marking
- encoding.py: encoder and bundler ABI calldata
- compiler.py: plan -> encodeAndExecuteaaaaaYops arguments
"""

from dexroute.execution.compiler import (
    CompiledCall,
    compile_execution_plan,
    encode_bundler_call,
    transaction_value,
)
from dexroute.execution.plan import (
    PlanStep,
    PoolExecutionStructure,
    PoolRef,
    TradeContext,
    WrapOp,
    build_execution_plan,
    min_amount_out,
    normalize_route,
)

__all__ = [
    "CompiledCall",
    "PlanStep",
    "PoolExecutionStructure",
    "PoolRef",
    "TradeContext",
    "WrapOp",
    "build_execution_plan",
    "compile_execution_plan",
    "encode_bundler_call",
    "min_amount_out",
    "normalize_route",
    "transaction_value",
]
