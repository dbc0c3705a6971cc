"""
System settings store.
"""
import logging
from typing import Any

from pgadapter.adapter import RelationalAdapter
from pgadapter.domain.models import SystemSetting
from pgadapter.exceptions import ValidationError
from pgadapter.types import Condition
from pgadapter.utils import is_empty

logger = logging.getLogger(__name__)

__all__ = ['SystemSettingAdapter']


class SystemSettingAdapter(RelationalAdapter):
    """Named settings documents.

    `settings` is a merge column: updates overlay the stored document
    instead of replacing it.
    """

    model_class = SystemSetting

    async def get_by_name(self, name: str, options: Any = None) -> dict | None:
        if is_empty(name):
            raise ValidationError(f'Get {self.table_name} error: Input name is empty',
                                  source='name')
        return await self.get_one(Condition(where=('name = $1',), args=(name,)), options)
