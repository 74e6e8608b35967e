"""Built-in stack declarations."""

from stackwire.stacks.flowise import FlowiseStackConfig, build_flowise_stack

__all__ = ["FlowiseStackConfig", "build_flowise_stack"]
