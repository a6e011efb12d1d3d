from pathlib import Path

import pytest

from src.core.request import UploadRequest
from src.providers.backlog.api.space import SpaceAPI
from tests.unit.providers.backlog.api.conftest import sent_request


@pytest.fixture
def api(mock_client):
    return SpaceAPI(client=mock_client)


@pytest.mark.asyncio
async def test_get_space(api, mock_client):
    mock_client.execute.return_value = {"spaceKey": "example", "name": "Example", "ownerId": 1}
    space = await api.get_space()
    assert space.space_key == "example"
    assert sent_request(mock_client).path == "/api/v2/space"


@pytest.mark.asyncio
async def test_upload_attachment(api, mock_client):
    mock_client.upload.return_value = {"id": 7, "name": "shot.png", "size": 1024}

    attachment = await api.upload_attachment(Path("/tmp/shot.png"))

    assert attachment.id == 7
    request = sent_request(mock_client, "upload")
    assert isinstance(request, UploadRequest)
    assert request.path == "/api/v2/space/attachment"
    assert request.file_field == "file"
    assert request.file_path == Path("/tmp/shot.png")
    assert request.fields == ()


@pytest.mark.asyncio
async def test_get_rate_limit_unwraps_envelope(api, mock_client):
    bucket = {"limit": 600, "remaining": 598, "reset": 1700000000}
    mock_client.execute.return_value = {"rateLimit": {"read": bucket, "update": bucket}}

    rate_limit = await api.get_rate_limit()

    assert rate_limit.read.remaining == 598
    assert rate_limit.search is None
    assert sent_request(mock_client).path == "/api/v2/rateLimit"
