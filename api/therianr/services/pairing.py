def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    """Order two distinct user ids so (a, b) and (b, a) share one storage key."""
    a, b = str(user_a), str(user_b)
    if a == b:
        raise ValueError("a pair needs two distinct users")
    return (a, b) if a < b else (b, a)


def pair_key(user_a: str, user_b: str) -> str:
    low, high = canonical_pair(user_a, user_b)
    return f"{low}:{high}"
