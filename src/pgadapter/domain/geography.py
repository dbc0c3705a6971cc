"""
Province, district and ward lookups.
"""
import logging
from typing import Any

from pgadapter.adapter import RelationalAdapter
from pgadapter.domain.models import District, Province, Ward
from pgadapter.exceptions import ValidationError
from pgadapter.types import Condition
from pgadapter.utils import is_empty

logger = logging.getLogger(__name__)

__all__ = ['ProvinceAdapter', 'DistrictAdapter', 'WardAdapter']


def _check_empty(adapter: RelationalAdapter, **values: Any) -> None:
    for source, value in values.items():
        if is_empty(value):
            raise ValidationError(f'Get {adapter.table_name} error: Input {source} is empty',
                                  source=source)


def _codes_condition(**codes: Any) -> Condition:
    where = tuple(f'{column} = ${index}' for index, column in enumerate(codes, start=1))
    return Condition(where=where, args=tuple(codes.values()))


class ProvinceAdapter(RelationalAdapter):
    model_class = Province

    async def get_many_by_country(self, country_code: str, options: Any = None) -> list[dict]:
        _check_empty(self, country_code=country_code)
        return await self.get_all_condition(_codes_condition(country_code=country_code), options)

    async def get_by_code(self, country_code: str, province_code: str,
                          options: Any = None) -> dict | None:
        _check_empty(self, country_code=country_code, province_code=province_code)
        condition = _codes_condition(country_code=country_code, province_code=province_code)
        return await self.get_one(condition, options)


class DistrictAdapter(RelationalAdapter):
    model_class = District

    async def get_many_by_province(self, country_code: str, province_code: str,
                                   options: Any = None) -> list[dict]:
        _check_empty(self, country_code=country_code, province_code=province_code)
        condition = _codes_condition(country_code=country_code, province_code=province_code)
        return await self.get_all_condition(condition, options)

    async def get_by_code(self, country_code: str, province_code: str, district_code: str,
                          options: Any = None) -> dict | None:
        _check_empty(self, country_code=country_code, province_code=province_code,
                     district_code=district_code)
        condition = _codes_condition(country_code=country_code, province_code=province_code,
                                     district_code=district_code)
        return await self.get_one(condition, options)


class WardAdapter(RelationalAdapter):
    model_class = Ward

    async def get_many_by_district(self, country_code: str, province_code: str,
                                   district_code: str, options: Any = None) -> list[dict]:
        _check_empty(self, country_code=country_code, province_code=province_code,
                     district_code=district_code)
        condition = _codes_condition(country_code=country_code, province_code=province_code,
                                     district_code=district_code)
        return await self.get_all_condition(condition, options)
