from typing import Any, Dict


def param_text(value: Any) -> str:
    # Mirror the way flags and counts read in narratives ("true", "3").
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render(template: str, params: Dict[str, Any]) -> str:
    """
    Replace every %%key%% with params[key].
    Placeholders without a matching param are left as-is so broken commands stay visible.
    """
    if not template:
        return template or ""
    out = template
    for key, value in (params or {}).items():
        out = out.replace(f"%%{key}%%", param_text(value))
    return out
