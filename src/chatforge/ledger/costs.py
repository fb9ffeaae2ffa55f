"""Crystal prices for metered operations."""

DEFAULT_TEXT_COST = 1
IMAGE_GENERATION_COST = 5

# Larger models cost more per reply
MODEL_COSTS: dict[str, int] = {
    "llama-3.1-8b-instant": 1,
    "llama-3.3-70b-versatile": 2,
    "llama-3.1-70b-versatile": 2,
    "mixtral-8x7b-32768": 2,
    "gemma2-9b-it": 1,
}


def text_cost(model: str) -> int:
    """Price of one chat reply with ``model``."""
    return MODEL_COSTS.get(model, DEFAULT_TEXT_COST)


def image_cost() -> int:
    """Price of one generated image."""
    return IMAGE_GENERATION_COST
