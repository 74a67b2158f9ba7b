"""Declarative description of every policy mode.

These mirror the runtime decisions in mintable/enforcer.py and serve as
human-readable documentation for `main.py modes`.
"""

MODES = {
    "enforce": {
        "description": "Default whenever a 'mintable' section is present.",
        "rules": [
            "Only identities in grants[contract_key] (explicit or seconded) may open a minter",
            "Any other caller gets AccessDenied, or its fallback value when it supplied one",
            "Every denial is logged at WARNING, fallback or not",
            "Callers whose file maps to no package are treated as ungranted",
        ],
    },
    "permissive": {
        "description": "Default when the manifest has no 'mintable' section.",
        "rules": [
            "Every caller may open every minter",
            "Callers that enforce mode would deny are logged at INFO",
        ],
    },
    "report-only": {
        "description": "Migration mode: behaves like permissive, complains like enforce.",
        "rules": [
            "Every caller may open every minter",
            "Callers that enforce mode would deny are logged at WARNING",
        ],
    },
}

SECONDMENT = {
    "description": "How a dependency's self-nominations become grants.",
    "rules": [
        "Each entry of 'second' is located (path relative to the project, or package name on the search path)",
        "Its manifest (mintable.toml, mintable.json or pyproject.toml [tool.mintable]) must exist",
        "The dependency itself, not the seconding project, is granted every key it lists in selfNominate",
        "Seconded grants and explicit grants are merged by set union",
    ],
}
