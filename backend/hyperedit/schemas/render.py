from typing import Literal

from hyperedit.schemas.common import CamelModel

RenderKind = Literal["preview", "export"]


class RenderRequest(CamelModel):
    preview: bool = False


class RenderResponse(CamelModel):
    success: bool = True
    path: str
    size: int
    duration: float
    download_url: str
