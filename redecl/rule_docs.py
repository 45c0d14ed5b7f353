"""
Rule Knowledge Base

Structured documentation for the redundant-var-decl rule: title, rationale,
compliant / non-compliant examples, fix strategy and known limitations.
"""

from typing import Dict, List, Optional
from dataclasses import dataclass, field

from redecl.scope import RULE_NAME


@dataclass
class RuleInfo:
    rule_id: str
    title: str
    severity: str                          # "warning" | "error"
    rationale: str
    non_compliant: str                     # code example
    compliant: str                         # fixed code example
    fix_strategy: str                      # human-readable guidance
    limitations: List[str] = field(default_factory=list)


_RULES: Dict[str, RuleInfo] = {}


def _add(rule: RuleInfo):
    _RULES[rule.rule_id] = rule


_add(RuleInfo(
    rule_id=RULE_NAME,
    title="Redundant variable declaration before :=",
    severity="warning",
    rationale=(
        "A `var` declaration whose variable is never read before a `:=` "
        "statement rebinds it adds nothing: the `:=` already declares or "
        "assigns the name.  The extra line suggests the author expected the "
        "earlier value to matter, which it never does."
    ),
    non_compliant="""\
func load() error {
    var err error
    data, err := readConfig()
    if err != nil {
        return err
    }
    return apply(data)
}""",
    compliant="""\
func load() error {
    data, err := readConfig()
    if err != nil {
        return err
    }
    return apply(data)
}""",
    fix_strategy=(
        "Delete the `var` declaration and let the `:=` statement declare the "
        "variable.  If the declaration has an initializer with side effects, "
        "keep the call as a plain statement or fold it into the `:=`.  If the "
        "declaration names a type (for example an interface such as `error`), "
        "check that the value the `:=` assigns has exactly that type; otherwise "
        "keep the declaration and change the `:=` to `=` after declaring the "
        "other names."
    ),
    limitations=[
        "Declarations that name several variables (`var a, b int`) are never reported.",
        "Package-level variables and the bodies of `init` functions are not analysed.",
        "`for k, v := range` targets are compared with tracked declarations "
        "directly, so a range loop reusing the name of an unused `var` in the "
        "same function is reported even though the loop variables are fresh.",
        "With binding resolution disabled, a `:=` that shadows an outer "
        "declaration inside a nested block is also reported.",
        "Reads are matched by name, so an inner variable with the same name "
        "(`if v, err := g(); err != nil`) counts as a read of an outer unused "
        "`var err` and hides the finding.",
        "Automatic fixes are limited to untyped declarations initialised with a "
        "basic literal that the `:=` replaces with a literal of the same type.",
    ],
))


def get_rule(rule_id: str) -> Optional[RuleInfo]:
    return _RULES.get(rule_id)


def format_rule_explanation(rule_id: str) -> str:
    """Return a rich, human-readable explanation of a rule."""
    rule = get_rule(rule_id)
    if rule is None:
        return f"Unknown rule: {rule_id}"

    explanation = f"""## {rule.rule_id} — {rule.title}
**Severity**: {rule.severity}

### Rationale
{rule.rationale}

### Non-Compliant Example
```go
{rule.non_compliant}
```

### Compliant Example
```go
{rule.compliant}
```

### How to Fix
{rule.fix_strategy}"""

    if rule.limitations:
        explanation += "\n\n### Known Limitations\n"
        explanation += "\n".join(f"- {item}" for item in rule.limitations)

    return explanation
