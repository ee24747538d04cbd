from typing import Iterable, List


def normalize_topic(topic: str) -> str:
    """Trim and lower-case a stream topic, e.g. ``" BTCUSDT@trade "`` -> ``"btcusdt@trade"``."""
    return topic.strip().lower()


def parse_topics(value: str | Iterable[str]) -> List[str]:
    """Split a comma-separated topic list and normalize each entry, dropping blanks."""
    items = value.split(",") if isinstance(value, str) else value
    return [normalize_topic(item) for item in items if item.strip()]


def format_uptime(seconds: float) -> str:
    """Format elapsed seconds as a human-readable uptime string."""
    total = int(seconds)
    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, secs = divmod(remainder, 60)
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
