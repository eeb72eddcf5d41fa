"""Interface the index synchronizer uses to turn file content into vectors."""

from abc import ABC, abstractmethod
from typing import List, Optional


class EmbeddingProvider(ABC):
    """Produces one fixed-length vector per piece of text.

    Implementations own any text cleanup and input length limits. Vector
    length must match the collection's configured vector_size.
    """

    @abstractmethod
    def get_embedding(self, text: str, model: Optional[str] = None) -> List[float]:
        """Embed a whole file or a single chunk.

        Raises:
            ConnectionError: Provider unreachable
            ValueError: Unknown model or empty embedding
            RuntimeError: Provider answered with an error
        """

    @abstractmethod
    def health_check(self) -> bool:
        pass

    @abstractmethod
    def get_current_model(self) -> str:
        pass
