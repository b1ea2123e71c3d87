import math
from typing import Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel

DataT = TypeVar("DataT")


class PageMeta(BaseModel):
    page: int
    page_size: int
    total_pages: int
    total_items: int

    @classmethod
    def from_total(cls, page: int, page_size: int, total_items: int) -> "PageMeta":
        return cls(
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total_items / page_size) if total_items else 0,
            total_items=total_items,
        )


class CommonResponse(BaseModel, Generic[DataT]):
    message: str
    success: bool
    payload: Optional[Union[DataT, List[DataT]]] = None
    meta: Optional[PageMeta] = None
