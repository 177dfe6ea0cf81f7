def parse_list(raw: str | None) -> list[str]:
    """Split a comma-separated value into unique, non-empty items."""
    if not raw:
        return []
    items: list[str] = []
    seen = set()
    for part in raw.split(","):
        item = part.strip()
        if item and item not in seen:
            items.append(item)
            seen.add(item)
    return items


def clean_text(value: str | None) -> str:
    # Collapse embedded newlines and runs of whitespace, keep casing.
    if not value:
        return ""
    return " ".join(value.split())


def optional_text(value: str | None) -> str | None:
    cleaned = clean_text(value)
    return cleaned or None
