"""
Address adapter with geography name resolution.

Before every insert and update the address cascade fills the display
names of province, district and ward from their codes:

- province: looked up by (country_code, province_code)
- district: looked up by (country_code, province_code, district_code)
- ward: looked up by primary key; its district and province codes are
  back-filled into the address when missing and then resolved as well

The three lookups run concurrently. Names already present on the model
are kept and their lookups skipped.
"""
import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from pgadapter.adapter import RelationalAdapter
from pgadapter.domain.geography import DistrictAdapter, ProvinceAdapter, WardAdapter
from pgadapter.domain.models import Address, display_name
from pgadapter.exceptions import NotFoundError, ValidationError
from pgadapter.hooks import HookRegistry
from pgadapter.schema import Model
from pgadapter.types import Condition, ExtraColumn, QueryOptions
from pgadapter.utils import has_value, is_empty

logger = logging.getLogger(__name__)

__all__ = ['AddressAdapter', 'DEFAULT_COUNTRY']

DEFAULT_COUNTRY = 'VN'


class AddressAdapter(RelationalAdapter):
    """Addresses of subjects, with province/district/ward names resolved on write.

    Args:
        executor: QueryExecutor shared with the geography adapters
        provinces, districts, wards: lookup adapters, built on the same
            executor when omitted
        default_country: country code applied when the model has none
        enable_postgis: write `gis_geometry` from longitude/latitude
    """

    model_class = Address

    def __init__(self, executor: Any, provinces: ProvinceAdapter | None = None,
                 districts: DistrictAdapter | None = None, wards: WardAdapter | None = None,
                 default_country: str = DEFAULT_COUNTRY, enable_postgis: bool = False,
                 hooks: HookRegistry | None = None, **kwargs: Any) -> None:
        super().__init__(executor, hooks=hooks, **kwargs)
        self.provinces = provinces or ProvinceAdapter(executor)
        self.districts = districts or DistrictAdapter(executor)
        self.wards = wards or WardAdapter(executor)
        self.default_country = default_country
        self.enable_postgis = enable_postgis

        for event in ('before_insert', 'before_update'):
            self.hooks.register(event, self.apply_address)
        self.hooks.register('before_update', self.apply_owner)
        for event in ('before_insert', 'before_update'):
            self.hooks.register(event, self.apply_geometry)

    # ===== Hooks =====

    async def _resolve_province(self, model: Model) -> dict | None:
        if not model.province_code or model.province:
            logger.debug('No need to update province')
            return None
        row = await self.provinces.get_by_code(model.country_code, model.province_code)
        if row is None:
            logger.warning(f'Province {model.country_code}/{model.province_code} not found')
        model.province = display_name(row)
        return row

    async def _resolve_district(self, model: Model) -> dict | None:
        if not model.province_code or not model.district_code or model.district:
            logger.debug('No need to update district')
            return None
        row = await self.districts.get_by_code(model.country_code, model.province_code,
                                               model.district_code)
        if row is None:
            logger.warning(f'District {model.country_code}/{model.province_code}/'
                           f'{model.district_code} not found')
        model.district = display_name(row)
        return row

    async def _resolve_ward(self, model: Model) -> dict | None:
        if not model.ward_id or model.ward:
            return None
        row = await self.wards.get_one_by_pk(model.ward_id)
        if row is None:
            logger.warning(f'Ward {model.ward_id} not found')
            return None
        model.ward = display_name(row)

        pending = []
        if not model.province_code and row.get('province_code'):
            model.province_code = row['province_code']
            model.province = None
            pending.append(self._resolve_province(model))
        if not model.district_code and row.get('district_code'):
            model.district_code = row['district_code']
            model.district = None
            pending.append(self._resolve_district(model))
        elif pending and not model.district:
            # district code was given but could not be resolved without a province
            pending.append(self._resolve_district(model))
        if pending:
            await asyncio.gather(*pending)
        return row

    async def apply_address(self, adapter: Any, model: Model, options: QueryOptions) -> None:
        """Fill country, province, district and ward display names."""
        if not model.country_code:
            model.country_code = self.default_country
        province, district, ward = await asyncio.gather(self._resolve_province(model),
                                                        self._resolve_district(model),
                                                        self._resolve_ward(model))
        logger.debug(f'Apply address. Province: {province} District: {district} Ward: {ward}')

    def apply_owner(self, adapter: Any, model: Model, options: QueryOptions) -> None:
        """Default the audit owner columns to the address user."""
        if not model.user_id:
            return
        if not model.created_by:
            model.created_by = model.user_id
        if not model.updated_by:
            model.updated_by = model.user_id

    def apply_geometry(self, adapter: Any, model: Model,
                       options: QueryOptions) -> QueryOptions | None:
        """Write `gis_geometry` when PostGIS is enabled and coordinates are set."""
        if not self.enable_postgis or not (model.longitude and model.latitude):
            return None
        point = f'ST_MakePoint({float(model.longitude)}, {float(model.latitude)})'
        return options.with_extra_column(ExtraColumn('gis_geometry', value=point))

    # ===== Subject queries =====

    def _subject_condition(self, subject: Any, address_type: str | None,
                           many: bool = False) -> Condition:
        where = ['subject_id = ANY($1)' if many else 'subject_id = $1']
        args = [list(subject) if many else subject]
        if address_type:
            where.append('type = $2')
            args.append(address_type)
        return Condition(where=tuple(where), args=tuple(args))

    async def get_one_by_subject(self, subject_id: Any, address_type: str | None = None,
                                 options: Any = None) -> dict | None:
        if is_empty(subject_id):
            raise ValidationError(f'getBySubject {self.table_name} error: Input subjectId is empty',
                                  source='subject_id')
        return await self.get_one(self._subject_condition(subject_id, address_type), options)

    async def get_many_by_subject(self, subject_ids: Sequence[Any],
                                  address_type: str | None = None,
                                  options: Any = None) -> list[dict]:
        if is_empty(subject_ids):
            raise ValidationError(f'getBySubjects {self.table_name} error: Input subjectIds is empty',
                                  source='subject_ids')
        logger.info(f'Get Address by Subjects {list(subject_ids)} Type {address_type}')
        condition = self._subject_condition(subject_ids, address_type, many=True)
        return await self.get_all_condition(condition, options)

    async def get_by_user(self, user_id: Any, options: Any = None) -> dict | None:
        if is_empty(user_id):
            raise ValidationError(f'Get {self.table_name} error: Input user ID value is empty',
                                  source='user_id')
        condition = Condition(where=('user_id = $1',), args=(user_id,))
        return await self.get_one(condition, options)

    async def update_by_subject(self, model: Any, options: Any = None) -> dict | None:
        """Update the address of a subject, found by subject and type.

        Raises NotFoundError when the subject has no address.
        """
        model = self._coerce_model(model)
        if is_empty(model.subject_id):
            raise ValidationError('Empty subjectId', source='subject_id')
        logger.info(f'Begins updating model. Table name: {self.table_name}. '
                    f'Subject ID: {model.subject_id}')

        row = await self.get_one_by_subject(model.subject_id, model.type)
        if row is None:
            raise NotFoundError(source='subject_id')
        if not has_value(model.uid):
            model.uid = row.get('uid')
        options = QueryOptions.coerce(options).evolve(old_row=row)
        return await self.update_one(model, options)

    async def get_or_create_by_subject(self, model: Any, options: Any = None) -> dict | None:
        model = self._coerce_model(model)
        row = await self.get_one_by_subject(model.subject_id, model.type)
        if row is not None:
            return row
        logger.debug('Address not found. Creating address...')
        return await self.insert_one(model, options)
