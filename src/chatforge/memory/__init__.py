"""Long-term facts each character remembers about a user."""

from .extractor import FactExtractor
from .manager import MemoryManager
from .models import Fact, FactCandidate
from .store import FactStore

__all__ = ["Fact", "FactCandidate", "FactExtractor", "FactStore", "MemoryManager"]
