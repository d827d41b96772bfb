"""Tests for media storage: URL mapping and file deletion (Supabase + local)."""

import os
from unittest.mock import MagicMock, patch

import requests

from folio.services import storage_service

SUPABASE = {
    "SUPABASE_URL": "https://xyz.supabase.co",
    "SUPABASE_SERVICE_KEY": "service-key",
    "SUPABASE_STORAGE_BUCKET": "portfolio-media",
}
PUBLIC = "https://xyz.supabase.co/storage/v1/object/public/portfolio-media"


class TestStoragePathFor:

    def test_local_url(self, app):
        assert storage_service.storage_path_for("/uploads/projects/a.png") == "projects/a.png"

    def test_supabase_url(self, app):
        with patch.dict(app.config, SUPABASE):
            path = storage_service.storage_path_for(f"{PUBLIC}/blocks/b.png")
        assert path == "blocks/b.png"

    def test_foreign_urls_are_ignored(self, app):
        with patch.dict(app.config, SUPABASE):
            assert storage_service.storage_path_for("https://example.com/cat.png") is None
            assert storage_service.storage_path_for(f"{PUBLIC}/../secrets.txt") is None
        assert storage_service.storage_path_for("/uploads/projects/../../app.db") is None
        assert storage_service.storage_path_for("/uploads/other/a.png") is None
        assert storage_service.storage_path_for("") is None


class TestDeleteFile:

    def test_supabase_delete(self, app):
        with patch.dict(app.config, SUPABASE), \
                patch.object(storage_service.requests, "delete") as delete:
            delete.return_value = MagicMock(status_code=200)
            assert storage_service.delete_file("projects/a.png") is True

        url = delete.call_args.args[0]
        assert url == "https://xyz.supabase.co/storage/v1/object/portfolio-media/projects/a.png"
        assert delete.call_args.kwargs["headers"]["Authorization"] == "Bearer service-key"

    def test_supabase_failure_is_logged(self, app, caplog):
        with patch.dict(app.config, SUPABASE), \
                patch.object(
                    storage_service.requests, "delete",
                    side_effect=requests.ConnectionError("unreachable"),
                ):
            assert storage_service.delete_file("projects/a.png") is False
        assert "Failed to delete projects/a.png from Supabase" in caplog.text

    def test_local_delete(self, app, tmp_path):
        target = tmp_path / "uploads" / "blocks" / "b.png"
        target.parent.mkdir(parents=True)
        target.write_bytes(b"png")
        with patch.object(app, "instance_path", str(tmp_path)):
            assert storage_service.delete_file("blocks/b.png") is True
            # Already gone is fine.
            assert storage_service.delete_file("blocks/b.png") is True
        assert not os.path.exists(target)


class TestDiscardMedia:

    def test_local_urls_removed_from_disk_even_with_supabase(self, app):
        with patch.dict(app.config, SUPABASE), \
                patch.object(storage_service, "_delete_local", return_value=True) as local, \
                patch.object(storage_service, "_delete_supabase", return_value=True) as remote:
            deleted = storage_service.discard_media({
                "/uploads/projects/a.png",
                f"{PUBLIC}/blocks/b.png",
                "https://example.com/c.png",
            })

        assert deleted == ["projects/a.png", "blocks/b.png"]
        local.assert_called_once_with("projects/a.png")
        assert remote.call_args.args[1] == "blocks/b.png"
