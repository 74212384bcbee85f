"""Base classes for ledger computation blocks.

- Block: declares the context keys it reads and writes
- BlockContext: key/value store shared by the blocks of one run
- BlockExecutor: runs blocks in dependency order
- topological_sort: orders blocks so producers run before consumers
"""

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional


# =============================================================================
# Block Context
# =============================================================================

@dataclass
class BlockContext:
    """Values passed between blocks.

    Example:
        context = BlockContext()
        context.set("ledger_snapshot", store.load_snapshot(company_id))

        ValuationBlock().execute(context)
        history_df = context.get("valuation_history")
    """

    _data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str) -> Any:
        """Value stored under `key`.

        Raises:
            KeyError: If nothing was stored under `key`
        """
        if key not in self._data:
            raise KeyError(f"Key '{key}' not found in context. Available keys: {self.keys()}")
        return self._data[key]

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def has(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> List[str]:
        return list(self._data.keys())


# =============================================================================
# Block Base Class
# =============================================================================

class Block(ABC):
    """A computation unit over the ledger snapshot.

    Subclasses declare their inputs and outputs so the executor can order
    them, and write every declared output in execute().

    Subclass example:
        class SummaryBlock(Block):
            def inputs(self) -> List[str]:
                return ["ledger_snapshot"]

            def outputs(self) -> List[str]:
                return ["funding_summary"]

            def execute(self, context: BlockContext) -> None:
                snapshot = context.get("ledger_snapshot")
                context.set("funding_summary", summary_frame(snapshot))
    """

    @abstractmethod
    def inputs(self) -> List[str]:
        """Context keys this block reads."""
        pass

    @abstractmethod
    def outputs(self) -> List[str]:
        """Context keys this block writes."""
        pass

    @abstractmethod
    def execute(self, context: BlockContext) -> None:
        """Read inputs from context, compute, write outputs to context."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(inputs={self.inputs()}, outputs={self.outputs()})"


# =============================================================================
# Dependency Resolution
# =============================================================================

class CircularDependencyError(Exception):
    """Raised when blocks depend on each other's outputs in a cycle."""
    pass


def topological_sort(blocks: List[Block]) -> List[Block]:
    """Order blocks so every block runs after the blocks producing its inputs.

    Inputs that no block produces are expected in the initial context. Blocks
    without dependencies between them keep their given order.

    Raises:
        ValueError: If two blocks declare the same output
        CircularDependencyError: If the dependencies form a cycle
    """
    producers: Dict[str, Block] = {}
    for block in blocks:
        for key in block.outputs():
            if key in producers:
                raise ValueError(f"Multiple blocks produce '{key}': {producers[key]} and {block}")
            producers[key] = block

    waiting_on: Dict[Block, int] = {block: 0 for block in blocks}
    consumers: Dict[Block, List[Block]] = {block: [] for block in blocks}
    for block in blocks:
        for key in block.inputs():
            producer = producers.get(key)
            if producer is not None:
                consumers[producer].append(block)
                waiting_on[block] += 1

    ready: Deque[Block] = deque(block for block in blocks if waiting_on[block] == 0)
    ordered: List[Block] = []
    while ready:
        block = ready.popleft()
        ordered.append(block)
        for consumer in consumers[block]:
            waiting_on[consumer] -= 1
            if waiting_on[consumer] == 0:
                ready.append(consumer)

    if len(ordered) != len(blocks):
        stuck = [block for block in blocks if waiting_on[block] > 0]
        raise CircularDependencyError(f"Circular dependency detected among blocks: {stuck}")

    return ordered


# =============================================================================
# Block Executor
# =============================================================================

class BlockExecutor:
    """Runs blocks in dependency order and checks their declared keys.

    Example:
        executor = BlockExecutor([SummaryBlock(), EsopBlock(), ValuationBlock(), EquityBlock()])
        context = BlockContext()
        context.set("ledger_snapshot", snapshot)
        executor.execute(context)

        context.get("equity_distribution")
    """

    def __init__(self, blocks: List[Block]):
        self.blocks = blocks
        self._order: Optional[List[Block]] = None

    def execute(self, context: BlockContext) -> BlockContext:
        """Run every block once.

        Raises:
            CircularDependencyError: If blocks have circular dependencies
            KeyError: If a block's input is missing from context
            ValueError: If a block did not write a declared output
        """
        if self._order is None:
            self._order = topological_sort(self.blocks)

        for block in self._order:
            missing = [key for key in block.inputs() if not context.has(key)]
            if missing:
                raise KeyError(
                    f"Block {block} requires inputs {missing} but they are not in context. "
                    f"Available keys: {context.keys()}"
                )

            block.execute(context)

            for key in block.outputs():
                if not context.has(key):
                    raise ValueError(f"Block {block} declared output '{key}' but didn't write it to context")

        return context
