"""
请求描述符测试
"""

from dataclasses import dataclass
from typing import List, Optional

import pytest

from src.core.form import form_field, form_params
from src.core.identifiers import UserId
from src.core.request import (
    ApiRequest,
    DownloadedFile,
    DownloadRequest,
    HttpMethod,
    UploadRequest,
    encode_params,
    pairs_to_dict,
)


@form_params
@dataclass(frozen=True, kw_only=True)
class SearchParams:
    keyword: Optional[str] = None
    user_ids: Optional[List[UserId]] = form_field(name="userId", array=True, default=None)


class CustomParams:
    def to_form(self):
        return [("custom", "1")]


def test_get_populates_query_slot():
    request = ApiRequest.get("/api/v2/users", SearchParams(keyword="a", user_ids=[UserId(1)]))
    assert request.method is HttpMethod.GET
    assert request.query == (("keyword", "a"), ("userId[]", "1"))
    assert request.form == ()


def test_post_and_patch_populate_form_slot():
    post = ApiRequest.post("/api/v2/issues", SearchParams(keyword="a"))
    patch = ApiRequest.patch("/api/v2/issues/1", SearchParams(keyword="b"))
    assert post.form == (("keyword", "a"),)
    assert post.query == ()
    assert patch.method is HttpMethod.PATCH
    assert patch.form == (("keyword", "b"),)


def test_delete_uses_query_slot():
    request = ApiRequest.delete("/api/v2/issues/1", SearchParams(keyword="x"))
    assert request.query == (("keyword", "x"),)


def test_no_params():
    request = ApiRequest.get("/api/v2/space")
    assert request.query == ()
    assert request.form == ()


def test_both_slots_rejected():
    with pytest.raises(ValueError):
        ApiRequest(HttpMethod.POST, "/api/v2/issues", query=[("a", "1")], form=[("b", "2")])


@pytest.mark.parametrize("path", ["api/v2/issues", "", None])
def test_relative_path_rejected(path):
    with pytest.raises(ValueError):
        ApiRequest(HttpMethod.GET, path)


def test_method_accepts_string():
    assert ApiRequest("GET", "/api/v2/space").method is HttpMethod.GET
    assert HttpMethod.PUT.has_body
    assert not HttpMethod.GET.has_body


def test_encode_params_prefers_to_form():
    assert encode_params(CustomParams()) == (("custom", "1"),)
    assert encode_params(None) == ()


def test_descriptor_is_immutable():
    request = ApiRequest.get("/api/v2/space")
    with pytest.raises(AttributeError):
        request.path = "/other"


def test_upload_request_encodes_metadata(tmp_path):
    file_path = tmp_path / "report.txt"
    request = UploadRequest.of("/api/v2/space/attachment", str(file_path), SearchParams(keyword="k"))
    assert request.file_path == file_path
    assert request.file_field == "file"
    assert request.fields == (("keyword", "k"),)


def test_download_request_query():
    request = DownloadRequest.of("/api/v2/issues/1/attachments/2", SearchParams(keyword="k"))
    assert request.query == (("keyword", "k"),)
    assert DownloadRequest("/api/v2/projects/BLG/image").query == ()


def test_downloaded_file_save(tmp_path):
    downloaded = DownloadedFile(filename="../a.png", content_type="image/png", content=b"\x89PNG")
    assert downloaded.size == 4

    target = downloaded.save(tmp_path)
    # 只使用文件名部分，不会写到目标目录之外
    assert target == tmp_path / "a.png"
    assert target.read_bytes() == b"\x89PNG"

    renamed = downloaded.save(tmp_path, filename="icon.png")
    assert renamed == tmp_path / "icon.png"


def test_pairs_to_dict_merges_duplicates():
    pairs = [("a", "1"), ("b[]", "x"), ("b[]", "y"), ("b[]", "z")]
    assert pairs_to_dict(pairs) == {"a": "1", "b[]": ["x", "y", "z"]}
