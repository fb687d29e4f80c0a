from __future__ import annotations


def join_paths(*segments: str) -> str:
    """
    Join URL path fragments into a single route.

      join_paths("/api/", "/users/")  -> "/api/users"
      join_paths("/api", "{id}")      -> "/api/{id}"
      join_paths("", "")              -> ""

    Never raises; slash-only fragments degrade to best-effort concatenation.
    """
    parts = [(s or "").strip() for s in segments]
    parts = [s for s in parts if s]
    if not parts:
        return ""

    joined = parts[0]
    for seg in parts[1:]:
        if seg.startswith("/"):
            seg = seg[1:]
        if joined.endswith("/") and len(joined) > 1:
            joined = joined[:-1]
        if seg.endswith("/") and len(seg) > 1:
            seg = seg[:-1]

        if joined and seg and not joined.endswith("/") and not seg.startswith("/"):
            joined = f"{joined}/{seg}"
        else:
            joined = joined + seg

    if not joined.startswith("/"):
        joined = "/" + joined
    return joined


def raw_path(class_path: str, method_path: str) -> str:
    # unnormalized concatenation, kept for exact reproduction in UIs
    if not method_path:
        return class_path
    if not class_path:
        return method_path
    sep = "" if method_path.startswith("/") else "/"
    return f"{class_path}{sep}{method_path}"
