from hyperedit.schemas.asset import Asset, AssetResponse
from hyperedit.schemas.edit import EditRequest, ProcessRequest
from hyperedit.schemas.project import (
    ClipTransform,
    Project,
    ProjectSettings,
    TimelineClip,
    Track,
)
from hyperedit.schemas.render import RenderRequest, RenderResponse

__all__ = [
    "Asset",
    "AssetResponse",
    "EditRequest",
    "ProcessRequest",
    "ClipTransform",
    "Project",
    "ProjectSettings",
    "TimelineClip",
    "Track",
    "RenderRequest",
    "RenderResponse",
]
