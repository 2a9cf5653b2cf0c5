from __future__ import annotations

def member_path(name: str) -> str:
    """Map an archive member name to a relative filesystem path.

    Rules:
    - Convert backslashes to slashes
    - Strip leading slashes (absolute names extract under the output dir)
    - Remove empty and '.' segments
    - Reject '..' segments and names that normalize to nothing
    """
    p = name.replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise ValueError(f"Member name may not contain '..': {name!r}")
    if not parts:
        raise ValueError(f"Empty member name: {name!r}")
    return "/".join(parts)
