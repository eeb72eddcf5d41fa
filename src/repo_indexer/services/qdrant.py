"""Qdrant vector database client."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Dict, Any, Optional, Tuple, Union

import httpx

from ..config import QdrantConfig

logger = logging.getLogger(__name__)

PointId = Union[str, int]


class CursorKind(Enum):
    NONE = "none"
    CONTINUABLE = "continuable"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class ScrollCursor:
    """Pagination token returned by a scroll request.

    Only string and integer tokens can be sent back to continue scrolling.
    Anything else Qdrant may hand out (null, structured cursors) ends the
    scroll, even if the server claims more data is available.
    """

    kind: CursorKind
    token: Optional[PointId] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "ScrollCursor":
        if raw is None:
            return cls(CursorKind.NONE)
        # bool is an int subclass but never a valid offset
        if isinstance(raw, bool):
            return cls(CursorKind.OPAQUE)
        if isinstance(raw, (str, int)):
            return cls(CursorKind.CONTINUABLE, raw)
        return cls(CursorKind.OPAQUE)

    @property
    def has_more(self) -> bool:
        return self.kind is CursorKind.CONTINUABLE


class QdrantClient:
    """Client for interacting with Qdrant vector database."""

    def __init__(
        self, config: QdrantConfig, http_client: Optional[httpx.Client] = None
    ):
        self.config = config
        self.client = http_client or httpx.Client(
            base_url=config.host, timeout=config.timeout
        )

    def _collection(self, collection_name: Optional[str]) -> str:
        return collection_name or self.config.collection_name

    def health_check(self) -> bool:
        """Check if Qdrant service is accessible."""
        try:
            response = self.client.get("/healthz", timeout=2.0)
            return bool(response.status_code == 200)
        except Exception:
            return False

    def collection_exists(self, collection_name: Optional[str] = None) -> bool:
        """Check if collection exists."""
        collection = self._collection(collection_name)
        try:
            response = self.client.get(f"/collections/{collection}")
            return bool(response.status_code == 200)
        except Exception:
            return False

    def create_collection(
        self, collection_name: Optional[str] = None, vector_size: Optional[int] = None
    ) -> None:
        """Create a collection using cosine distance.

        Raises:
            httpx.HTTPStatusError: If Qdrant rejects the request
        """
        collection = self._collection(collection_name)
        size = vector_size or self.config.vector_size

        response = self.client.put(
            f"/collections/{collection}",
            json={"vectors": {"size": size, "distance": "Cosine"}},
        )
        if response.status_code == 409:
            # Created concurrently by someone else
            return
        response.raise_for_status()
        logger.info(f"Created collection: {collection}")

    def ensure_collection(
        self, collection_name: Optional[str] = None, vector_size: Optional[int] = None
    ) -> None:
        """Ensure collection exists, create it if it doesn't."""
        collection = self._collection(collection_name)

        if not self.collection_exists(collection):
            self.create_collection(collection, vector_size)
            return

        expected_size = vector_size or self.config.vector_size
        try:
            info = self.get_collection_info(collection)
            actual_size = (
                info.get("config", {}).get("params", {}).get("vectors", {}).get("size")
            )
        except Exception as e:
            logger.debug(f"Could not read collection info for {collection}: {e}")
            return

        if actual_size and actual_size != expected_size:
            logger.warning(
                f"Collection vector size mismatch: expected {expected_size}, "
                f"got {actual_size}"
            )

    def get_collection_info(
        self, collection_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """Get collection information."""
        collection = self._collection(collection_name)
        response = self.client.get(f"/collections/{collection}")
        response.raise_for_status()
        return dict(response.json()["result"])

    def create_point(
        self, point_id: PointId, vector: List[float], payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Create a point object for upsert."""
        return {"id": point_id, "vector": vector, "payload": payload.copy()}

    def upsert_points(
        self, points: List[Dict[str, Any]], collection_name: Optional[str] = None
    ) -> None:
        """Insert or replace points.

        Raises:
            httpx.HTTPError: If the request fails; the Qdrant error description
                is logged first
        """
        collection = self._collection(collection_name)

        try:
            response = self.client.put(
                f"/collections/{collection}/points", json={"points": points}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            error_detail: Any = str(e)
            try:
                if e.response.content:
                    error_detail = (
                        e.response.json().get("status", {}).get("error", error_detail)
                    )
            except ValueError:
                pass
            logger.error(
                f"Failed to upsert {len(points)} points: "
                f"{e.response.status_code} {error_detail}"
            )
            raise

    def scroll_points(
        self,
        collection_name: Optional[str] = None,
        limit: int = 100,
        with_payload: Union[bool, List[str]] = True,
        with_vectors: bool = False,
        offset: Optional[PointId] = None,
    ) -> Tuple[List[Dict[str, Any]], ScrollCursor]:
        """Fetch one page of points.

        Returns:
            The page's points and the cursor for the next page

        Raises:
            httpx.HTTPError: If the request fails
        """
        collection = self._collection(collection_name)

        request_data: Dict[str, Any] = {
            "limit": limit,
            "with_payload": with_payload,
            "with_vector": with_vectors,
        }
        if offset is not None:
            request_data["offset"] = offset

        response = self.client.post(
            f"/collections/{collection}/points/scroll", json=request_data
        )
        response.raise_for_status()

        result = response.json()["result"]
        points = list(result.get("points", []))
        return points, ScrollCursor.from_raw(result.get("next_page_offset"))

    def delete_points(
        self, point_ids: List[PointId], collection_name: Optional[str] = None
    ) -> int:
        """Delete points by id in a single request.

        Returns:
            Number of ids submitted for deletion

        Raises:
            httpx.HTTPError: If the request fails
        """
        if not point_ids:
            return 0

        collection = self._collection(collection_name)
        response = self.client.post(
            f"/collections/{collection}/points/delete",
            json={"points": list(point_ids)},
        )
        response.raise_for_status()
        return len(point_ids)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
