from pgadapter.domain.address import AddressAdapter
from pgadapter.domain.common import CommonAdapter
from pgadapter.domain.geography import DistrictAdapter, ProvinceAdapter
from pgadapter.domain.geography import WardAdapter
from pgadapter.domain.models import Address, District, Province, SystemSetting
from pgadapter.domain.models import Ward
from pgadapter.domain.system_setting import SystemSettingAdapter

__all__ = [
    'Address',
    'AddressAdapter',
    'CommonAdapter',
    'District',
    'DistrictAdapter',
    'Province',
    'ProvinceAdapter',
    'SystemSetting',
    'SystemSettingAdapter',
    'Ward',
    'WardAdapter',
]
