"""
Rules engine package.

Defines the rule model and the engine that decides whether a caller may use
a resolver and which fields of its result the caller gets to see.

Modules of interest:
- models: Patterns, whitelists, rules and resolutions.
- registry: Declaration-ordered, immutable rule registry and its builder.
- matcher: Pattern evaluation and first-match rule selection.
- filtering: Recursive whitelist redaction of resolver results.
- engine: with_auth / awith_auth entry points.
- declarations: Loading rule sets from dicts or YAML files.
"""
