# formatting.py
# Short display strings for distances, durations and instructions.

from typing import Optional, Tuple


def format_distance(distance_m: float) -> str:
    """
    Rounded distance: whole metres under 100 m, tens of metres under
    1 km, then kilometres with one decimal.
    """
    if distance_m < 100:
        return f"{int(distance_m)}m"
    if distance_m < 1000:
        return f"{int(distance_m / 10) * 10}m"
    return f"{distance_m / 1000:.1f}km"


def format_time(seconds: float) -> str:
    if seconds < 60:
        return "< 1 min"
    if seconds < 3600:
        return f"{int(seconds / 60)} min"
    hours = int(seconds / 3600)
    minutes = int((seconds % 3600) / 60)
    return f"{hours}h {minutes}m"


def split_instruction(instruction: str, max_words: int = 6) -> Tuple[str, Optional[str]]:
    """
    Split a long instruction into a primary line and a secondary line.

    Instructions of more than max_words words keep their first four words
    on the primary line. An empty instruction means no route yet.
    """
    if not instruction:
        return "Calculating route...", None

    words = instruction.split(" ")
    if len(words) > max_words:
        return " ".join(words[:4]), " ".join(words[4:])
    return instruction, None
