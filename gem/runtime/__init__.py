"""
Runtime Orchestration Module

WHAT: Runtime subsystem for the GEM self-improving agent
WHERE: gem/runtime/ - orchestration layer above the configuration and memory stores
WHO: The interactive chat loop and the one-shot verification entry point
TIME: Dominated by policy inference; each commit runs two full evaluation passes

Provides the execution layer for the agent: the episodic memory store, the
configuration store with patch semantics, the reference-suite objective
function and the runtime executive that gates configuration mutation.

Agent Architecture:
- theta: the mutable configuration (system prompt, tools, extensions)
- memory: append-only episodic record of actions and loop traces
- reference suite: graded probes that define the objective J(theta)
- config log: append-only audit trail of every evaluated patch
"""

__all__ = ["agent"]
