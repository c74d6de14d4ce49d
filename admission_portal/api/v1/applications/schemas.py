from typing import List
from uuid import UUID

from pydantic import Field

from admission_portal.api.v1.students.schemas import CamelModel


class BundleRequest(CamelModel):
    selected_documents: List[UUID] = Field(..., min_length=1)


class HostedBundleResponse(CamelModel):
    """Returned instead of file bytes when bundles are delivered as hosted files."""

    url: str
    file_name: str
    storage_type: str
