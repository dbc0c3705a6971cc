"""
Table models for the bundled domain adapters.
"""
from typing import Any

from pgadapter.schema import Model, Schema

__all__ = ['Province', 'District', 'Ward', 'Address', 'SystemSetting', 'display_name']

_AUDIT = ('status', 'created_by', 'updated_by', 'created_at', 'updated_at')


def display_name(row: Any) -> str | None:
    """Human readable name of a geography row or model."""
    if row is None:
        return None
    return row.get('display_name') or row.get('name')


class Province(Model):
    schema = Schema(
        table='provinces',
        alias='p',
        fields=('uid', 'country_code', 'province_code', 'name', 'display_name',
                'sort_order', *_AUDIT),
        default_order=('sort_order', 'name'),
        ignore_on_update=frozenset({'created_at', 'created_by'}),
        )


class District(Model):
    schema = Schema(
        table='districts',
        alias='d',
        fields=('uid', 'country_code', 'province_code', 'district_code', 'name',
                'display_name', 'sort_order', *_AUDIT),
        default_order=('sort_order', 'name'),
        ignore_on_update=frozenset({'created_at', 'created_by'}),
        )


class Ward(Model):
    schema = Schema(
        table='wards',
        alias='w',
        fields=('uid', 'country_code', 'province_code', 'district_code', 'name',
                'display_name', 'sort_order', *_AUDIT),
        default_order=('sort_order', 'name'),
        ignore_on_update=frozenset({'created_at', 'created_by'}),
        )


class Address(Model):
    """Postal address owned by a subject (profile, shop, ...).

    `province`, `district` and `ward` hold display names resolved from
    the codes by the address adapter.
    """
    schema = Schema(
        table='addresses',
        alias='a',
        fields=('uid', 'subject_id', 'user_id', 'type', 'name', 'phone', 'street',
                'ward_id', 'ward', 'district_code', 'district', 'province_code',
                'province', 'country_code', 'postal_code', 'longitude', 'latitude',
                'is_default', 'metadata', *_AUDIT),
        default_order='-created_at',
        ignore_on_update=frozenset({'created_at'}),
        )


class SystemSetting(Model):
    schema = Schema(
        table='system_settings',
        alias='ss',
        fields=('uid', 'name', 'description', 'settings', *_AUDIT),
        default_order='name',
        ignore_on_update=frozenset({'created_at', 'created_by'}),
        )
