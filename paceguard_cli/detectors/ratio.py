def calculate_ratio(human: int, agent: int) -> float:
    """
    Human share of all attributed work.
    Returns 1.0 when nothing has been attributed yet (the human is at 100% until the agent does something).
    """
    total = human + agent
    if total == 0:
        return 1.0
    return human / total


def is_ratio_healthy(human: int, agent: int, target: float) -> bool:
    return calculate_ratio(human, agent) >= target
