"""
Unit tests for CV document storage.
"""

from unittest.mock import patch

import pytest

from appointments.core.storage import (
    DocumentNotFoundError,
    delete_document,
    resolve_document,
    save_document,
)


@pytest.fixture
def upload_dir(tmp_path):
    with patch("appointments.core.storage.settings") as mock_settings:
        mock_settings.upload_dir = str(tmp_path)
        yield tmp_path


@pytest.mark.asyncio
async def test_save_and_resolve(upload_dir):
    relative = await save_document(b"%PDF", "../../My CV (final).pdf", prefix="APP-2026-0000ABCD")

    assert relative.startswith("APP-2026-0000ABCD-")
    assert "/" not in relative
    path = resolve_document(relative)
    assert path.parent == upload_dir.resolve()
    assert path.read_bytes() == b"%PDF"


def test_resolve_rejects_escape(upload_dir):
    (upload_dir.parent / "outside.pdf").write_bytes(b"x")

    with pytest.raises(DocumentNotFoundError):
        resolve_document("../outside.pdf")


def test_resolve_missing(upload_dir):
    with pytest.raises(DocumentNotFoundError):
        resolve_document("nope.pdf")


@pytest.mark.asyncio
async def test_delete(upload_dir):
    relative = await save_document(b"%PDF", "cv.pdf")

    await delete_document(relative)
    await delete_document(relative)

    assert not (upload_dir / relative).exists()
