import io
import os
import unittest

from werkzeug.datastructures import FileStorage

from creditojus.config import Config
from creditojus.errors import ValidationError
from creditojus.infrastructure.storage import LocalDocumentStorage, discard_all, store_all
from tests.helpers.temp_db import TempDbSandbox


def _upload(name: str, content: bytes = b"conteudo", mimetype: str = "application/pdf") -> FileStorage:
    return FileStorage(stream=io.BytesIO(content), filename=name, content_type=mimetype)


class _FlakyStorage(LocalDocumentStorage):
    def __init__(self, root: str, fail_on: int) -> None:
        super().__init__(root)
        self.fail_on = fail_on
        self.calls = 0

    def store(self, file):
        self.calls += 1
        if self.calls == self.fail_on:
            raise OSError("disco cheio")
        return super().store(file)


class LocalDocumentStorageTest(unittest.TestCase):
    def setUp(self) -> None:
        self._sandbox = TempDbSandbox(prefix="storage")
        self.storage = LocalDocumentStorage(self._sandbox.upload_dir)

    def tearDown(self) -> None:
        self._sandbox.cleanup()

    def test_store_keeps_original_name_and_sanitizes_target(self) -> None:
        stored = self.storage.store(_upload("../../etc/Contrato Final.PDF", b"12345"))

        self.assertEqual(stored.name, "../../etc/Contrato Final.PDF")
        self.assertEqual(stored.size, 5)
        self.assertEqual(stored.mime_type, "application/pdf")
        self.assertTrue(stored.path.endswith(".pdf"))
        self.assertEqual(os.path.dirname(stored.path), str(self.storage.base_dir))
        self.assertTrue(os.path.exists(stored.path))

    def test_two_uploads_never_share_a_path(self) -> None:
        first = self.storage.store(_upload("contrato.pdf"))
        second = self.storage.store(_upload("contrato.pdf"))
        self.assertNotEqual(first.path, second.path)

    def test_store_all_removes_written_files_on_failure(self) -> None:
        storage = _FlakyStorage(self._sandbox.upload_dir, fail_on=2)

        with self.assertRaises(OSError):
            store_all(storage, [_upload("a.pdf"), _upload("b.pdf"), _upload("c.pdf")])

        self.assertEqual(os.listdir(storage.base_dir), [])

    def test_discard_all_tolerates_missing_files(self) -> None:
        stored = store_all(self.storage, [_upload("a.pdf"), _upload("b.pdf")])
        os.remove(stored[0].path)

        discard_all(self.storage, stored)

        self.assertEqual(os.listdir(self.storage.base_dir), [])

    def test_oversized_file_is_refused_and_batch_discarded(self) -> None:
        storage = LocalDocumentStorage(self._sandbox.upload_dir, max_file_size=8)

        with self.assertRaises(ValidationError) as ctx:
            store_all(storage, [_upload("a.pdf", b"12345678"), _upload("grande.pdf", b"123456789")])

        self.assertEqual(ctx.exception.code, "document_too_large")
        self.assertEqual(ctx.exception.http_status, 400)
        self.assertEqual(os.listdir(storage.base_dir), [])

    def test_default_limit_is_ten_megabytes_per_file(self) -> None:
        self.assertEqual(Config.MAX_FILE_SIZE, 10 * 1024 * 1024)
        self.assertIn("10 MB", ValidationError(message_key="document_too_large", params={"limit": "10"}).user_message())


if __name__ == "__main__":
    unittest.main()
