"""General utility functions and helper classes."""


def normalize_label(label: str) -> str:
    """Lower-case a free-text label and collapse surrounding and repeated whitespace."""
    return " ".join(label.split()).lower()
