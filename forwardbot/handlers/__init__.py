from typing import Optional, Tuple


def parse_command(text: str) -> Tuple[Optional[str], str]:
    """Split ``/cmd@bot args`` into ``("/cmd", "args")``; (None, text) for plain text."""
    text = (text or "").strip()
    if not text.startswith("/"):
        return None, text
    parts = text.split(maxsplit=1)
    cmd = parts[0].split("@")[0].lower()
    return cmd, parts[1].strip() if len(parts) > 1 else ""
