"""
Unit tests for IntegrationSettingsRepository, ProductTypeRepository
and InventoryItemRepository
"""
import pytest
from unittest.mock import MagicMock, patch

from stockroom.repositories.integration_settings_repository import IntegrationSettingsRepository
from stockroom.repositories.inventory_item_repository import InventoryItemRepository
from stockroom.repositories.product_type_repository import ProductTypeRepository


def mock_connection(mock_get_conn):
    mock_conn = MagicMock()
    mock_cursor = MagicMock()
    mock_get_conn.return_value = mock_conn
    mock_conn.cursor.return_value = mock_cursor
    return mock_conn, mock_cursor


class TestIntegrationSettingsRepository:

    @patch('stockroom.repositories.integration_settings_repository.get_db_connection_dict')
    def test_get_maps_row(self, mock_get_conn):
        _, mock_cursor = mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = {
            'id': 1, 'integration_type': 'shopify', 'is_enabled': True,
            'settings': {'shop_name': 'test-shop', 'access_token': 'tok', 'api_version': None},
            'created_at': None, 'updated_at': None
        }

        stored = IntegrationSettingsRepository().get('shopify')

        assert stored.is_enabled is True
        shopify = stored.shopify_settings()
        assert shopify.shop_name == 'test-shop'
        assert shopify.api_version == '2023-10'

    @patch('stockroom.repositories.integration_settings_repository.get_db_connection_dict')
    def test_get_missing(self, mock_get_conn):
        _, mock_cursor = mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        assert IntegrationSettingsRepository().get('shopify') is None

    @patch('stockroom.repositories.integration_settings_repository.get_db_connection_dict')
    def test_upsert_uses_on_conflict(self, mock_get_conn):
        mock_conn, mock_cursor = mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = {
            'id': 1, 'integration_type': 'shopify', 'is_enabled': False,
            'settings': {'shop_name': 'test-shop'}, 'created_at': None, 'updated_at': None
        }

        saved = IntegrationSettingsRepository().upsert('shopify', False, {'shop_name': 'test-shop'})

        assert 'ON CONFLICT (integration_type)' in mock_cursor.execute.call_args[0][0]
        assert saved.is_enabled is False
        mock_conn.commit.assert_called_once()


class TestProductTypeRepository:

    @patch('stockroom.repositories.product_type_repository.get_db_connection_dict')
    def test_get_or_create_returns_existing(self, mock_get_conn):
        _, mock_cursor = mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = {'id': 4, 'name': 'General', 'description': None}

        product_type = ProductTypeRepository().get_or_create('General', 'Imported from Shopify: General')

        assert product_type.id == 4
        assert mock_cursor.execute.call_count == 1

    @patch('stockroom.repositories.product_type_repository.get_db_connection_dict')
    def test_get_or_create_inserts_missing(self, mock_get_conn):
        mock_conn, mock_cursor = mock_connection(mock_get_conn)
        mock_cursor.fetchone.side_effect = [
            None,
            {'id': 9, 'name': 'Stationery', 'description': 'Imported from Shopify: Stationery'},
        ]

        product_type = ProductTypeRepository().get_or_create('Stationery', 'Imported from Shopify: Stationery')

        assert product_type.id == 9
        assert 'ON CONFLICT (name) DO NOTHING' in mock_cursor.execute.call_args[0][0]
        mock_conn.commit.assert_called_once()


class TestInventoryItemRepository:

    @patch('stockroom.repositories.inventory_item_repository.get_db_connection_dict')
    def test_record_upserts_as_strings(self, mock_get_conn):
        mock_conn, mock_cursor = mock_connection(mock_get_conn)

        InventoryItemRepository().record(808950810, 1, 632910392)

        assert mock_cursor.execute.call_args[0][1] == ('808950810', 1, '632910392')
        mock_conn.commit.assert_called_once()

    @patch('stockroom.repositories.inventory_item_repository.get_db_connection_dict')
    def test_find_product_id(self, mock_get_conn):
        _, mock_cursor = mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = {'product_id': 1}

        assert InventoryItemRepository().find_product_id('808950810') == 1

    @patch('stockroom.repositories.inventory_item_repository.get_db_connection_dict')
    def test_delete_for_product(self, mock_get_conn):
        _, mock_cursor = mock_connection(mock_get_conn)
        mock_cursor.rowcount = 2

        assert InventoryItemRepository().delete_for_product(1) == 2
