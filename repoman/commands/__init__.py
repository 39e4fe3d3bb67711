"""
Click commands for repoman, one module per verb.

Commands are thin: they parse arguments, call the Repoman facade and
render the result. Hooks from ``hook_config`` are run here, never in the
services.
"""
