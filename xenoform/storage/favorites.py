"""
Favorites Repository - the saved-species store.

Favorites are keyed by (client_id, species name). Inline data: image URLs are
never written; only remote image references survive a save.
"""

from __future__ import annotations

from xenoform.config import FAVORITES_MAX_PER_CLIENT
from xenoform.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from xenoform.observability.logging import get_logger
from xenoform.observability.telemetry import counter
from xenoform.species.models import FavoriteRecord, Species

logger = get_logger(__name__)


class FavoritesLimitError(RuntimeError):
    """Raised when a client already holds FAVORITES_MAX_PER_CLIENT favorites."""


def storable_image_url(image_url: str | None) -> str | None:
    """Keep http(s) references, drop inline data and anything else."""
    if image_url and image_url.startswith(("http://", "https://")):
        return image_url
    return None


class FavoritesRepository:
    """
    Repository for favorites CRUD operations.

    All methods use connection pooling and proper transaction handling.
    """

    @staticmethod
    def list(client_id: str) -> list[FavoriteRecord]:
        """
        List a client's favorites in the order they were saved.

        Args:
            client_id: Owner of the favorites

        Returns:
            List of FavoriteRecord, oldest first
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM favorites WHERE client_id = ? ORDER BY rowid",
                (client_id,),
            )
            rows = cursor.fetchall()

        return [FavoriteRecord.from_db_row(dict(row)) for row in rows]

    @staticmethod
    def get(client_id: str, name: str) -> FavoriteRecord | None:
        """
        Get one favorite by species name.

        Returns:
            FavoriteRecord if found, None otherwise
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM favorites WHERE client_id = ? AND name = ?",
                (client_id, name),
            )
            row = cursor.fetchone()

        if not row:
            return None

        return FavoriteRecord.from_db_row(dict(row))

    @staticmethod
    def is_favorite(client_id: str, name: str) -> bool:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM favorites WHERE client_id = ? AND name = ?",
                (client_id, name),
            ).fetchone()
        return row is not None

    @staticmethod
    def count(client_id: str) -> int:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM favorites WHERE client_id = ?",
                (client_id,),
            ).fetchone()
        return int(row[0])

    @staticmethod
    @retry_on_db_lock()
    def toggle(client_id: str, species: Species, image_url: str | None = None) -> bool:
        """
        Remove the favorite with this species' name, or add it if absent.

        Args:
            client_id: Owner of the favorites
            species: Species to toggle
            image_url: Current illustration; kept only if it is a remote URL

        Returns:
            True if the species is now a favorite, False if it was removed

        Raises:
            FavoritesLimitError: If adding would exceed FAVORITES_MAX_PER_CLIENT

        Side Effects:
            - Inserts or deletes one row in the favorites table
            - Commits transaction
        """
        with db_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM favorites WHERE client_id = ? AND name = ?",
                (client_id, species.name),
            )
            if cursor.rowcount:
                counter("favorites.removed")
                logger.info("Removed favorite %r", species.name)
                return False

            total = cursor.execute(
                "SELECT COUNT(*) FROM favorites WHERE client_id = ?",
                (client_id,),
            ).fetchone()[0]
            if total >= FAVORITES_MAX_PER_CLIENT:
                counter("favorites.limit_rejected")
                raise FavoritesLimitError(
                    f"Favorites limit reached ({FAVORITES_MAX_PER_CLIENT})"
                )

            record = FavoriteRecord(
                client_id=client_id,
                species=species,
                image_url=storable_image_url(image_url),
            )
            cursor.execute(
                """
                INSERT INTO favorites (client_id, name, payload, image_url, created_at)
                VALUES (:client_id, :name, :payload, :image_url, :created_at)
                """,
                record.to_db_dict(),
            )

        counter("favorites.added")
        logger.info("Added favorite %r", species.name)
        return True

    @staticmethod
    @retry_on_db_lock()
    def delete(client_id: str, name: str) -> bool:
        """
        Delete a favorite by name.

        Returns:
            True if a row was deleted
        """
        with db_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM favorites WHERE client_id = ? AND name = ?",
                (client_id, name),
            )
            deleted = cursor.rowcount > 0

        if deleted:
            counter("favorites.removed")
            logger.info("Deleted favorite %r", name)
        return deleted
