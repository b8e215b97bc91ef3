"""
Integration Settings Repository

One row per integration type. Rows are read fresh on every call; callers
must not cache the result.
"""
from typing import Any, Dict, Optional

from psycopg2.extras import Json

from stockroom.domain.integration import IntegrationSettings
from stockroom.core.database import get_db_connection_dict


class IntegrationSettingsRepository:
    """Data access for integration_settings"""

    def get(self, integration_type: str) -> Optional[IntegrationSettings]:
        """
        Get the stored settings for an integration

        Returns:
            IntegrationSettings or None if the integration was never configured
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, integration_type, is_enabled, settings, created_at, updated_at
                FROM integration_settings
                WHERE integration_type = %s
            """, (integration_type,))

            row = cursor.fetchone()
            if not row:
                return None

            return self._map_row(row)

        finally:
            cursor.close()
            conn.close()

    def upsert(
        self,
        integration_type: str,
        is_enabled: bool,
        settings: Dict[str, Any]
    ) -> IntegrationSettings:
        """Create or replace the settings row for an integration"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO integration_settings (integration_type, is_enabled, settings, created_at, updated_at)
                VALUES (%s, %s, %s, NOW(), NOW())
                ON CONFLICT (integration_type) DO UPDATE SET
                    is_enabled = EXCLUDED.is_enabled,
                    settings = EXCLUDED.settings,
                    updated_at = NOW()
                RETURNING id, integration_type, is_enabled, settings, created_at, updated_at
            """, (integration_type, is_enabled, Json(settings or {})))

            row = cursor.fetchone()
            conn.commit()
            return self._map_row(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    @staticmethod
    def _map_row(row: dict) -> IntegrationSettings:
        return IntegrationSettings(
            id=row['id'],
            integration_type=row['integration_type'],
            is_enabled=bool(row['is_enabled']),
            settings=row.get('settings') or {},
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at')
        )
