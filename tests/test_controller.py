import unittest

from s3_fakes import InMemoryS3Client, make_profile
from s3_files.controller import (
    ExplicitTypeRouting,
    FileManagerController,
    SeparatorRouting,
    build_routing_policy,
    status_for_error,
)
from s3_files.exceptions import (
    DeleteFailedError,
    ListFailedError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
    WriteFailedError,
)
from s3_files.models import FileListing, FilePayload, UploadItem
from s3_files.services import S3FileService


def build_controller(routing=None, max_concurrency=4):
    client = InMemoryS3Client()
    service = S3FileService(make_profile(), client_factory=lambda *_, **__: client)
    return FileManagerController(service, routing=routing, max_concurrency=max_concurrency), client


class ValidationTests(unittest.TestCase):
    def setUp(self):
        self.controller, self.client = build_controller()

    def test_keys_are_required(self):
        for operation in (
            self.controller.download,
            self.controller.delete,
            self.controller.create_folder,
            self.controller.delete_folder,
            self.controller.share_url,
        ):
            with self.subTest(operation=operation.__name__):
                with self.assertRaises(ValidationFailedError):
                    operation("   ")

    def test_rejects_empty_upload_body(self):
        with self.assertRaises(ValidationFailedError):
            self.controller.upload("a.txt", b"")
        self.assertEqual([], self.client.put_calls)

    def test_rejects_folder_shaped_file_key(self):
        with self.assertRaises(ValidationFailedError):
            self.controller.upload("docs/", b"data")

    def test_strips_leading_separator(self):
        key = self.controller.upload("/docs/a.txt", b"data")

        self.assertEqual("docs/a.txt", key)
        self.assertIn("docs/a.txt", self.client.objects)

    def test_read_text_decodes_body(self):
        self.controller.upload("hello.txt", "héllo".encode("utf-8"))

        self.assertEqual("héllo", self.controller.read_text("hello.txt"))


class ExplicitRoutingTests(unittest.TestCase):
    def setUp(self):
        self.controller, self.client = build_controller()
        self.client.add("docs/readme.txt", b"0123456789", "text/plain")

    def test_get_lists_or_downloads_by_mode(self):
        listing = self.controller.handle_get("docs", "list")
        payload = self.controller.handle_get("docs/readme.txt", "download")

        self.assertIsInstance(listing, FileListing)
        self.assertEqual(["readme.txt"], [entry.name for entry in listing.files])
        self.assertIsInstance(payload, FilePayload)
        self.assertEqual(b"0123456789", payload.body)

    def test_get_defaults(self):
        self.assertIsInstance(self.controller.handle_get("", None), FileListing)
        self.assertIsInstance(self.controller.handle_get("docs/readme.txt", None), FilePayload)

    def test_top_level_file_is_reachable(self):
        self.controller.upload("top.txt", b"top")

        self.assertEqual(b"top", self.controller.handle_get("top.txt", "file").body)

    def test_post_and_delete_folder(self):
        target, marker = self.controller.handle_post("archive", "folder")

        self.assertEqual(("folder", "archive/"), (target, marker))
        self.assertIn("archive/", self.client.objects)

        target, count = self.controller.handle_delete("docs", "folder")
        self.assertEqual(("folder", 1), (target, count))
        self.assertNotIn("docs/readme.txt", self.client.objects)

    def test_post_and_delete_file(self):
        target, key = self.controller.handle_post("notes.md", "file", b"# notes", "text/markdown")

        self.assertEqual(("file", "notes.md"), (target, key))
        self.assertEqual("text/markdown", self.client.objects["notes.md"]["content_type"])
        self.assertEqual(("file", 1), self.controller.handle_delete("notes.md", "file"))
        self.assertNotIn("notes.md", self.client.objects)

    def test_unknown_mode_is_rejected(self):
        with self.assertRaises(ValidationFailedError):
            self.controller.handle_get("docs", "tree")
        with self.assertRaises(ValidationFailedError):
            self.controller.handle_post("docs", "list")

    def test_folder_named_all_is_listed_not_the_root(self):
        self.client.add("all/inside.txt", b"inside")
        self.client.add("top.txt", b"top")

        listing = self.controller.handle_get("all", "list")

        self.assertEqual("all/", listing.prefix)
        self.assertEqual(["inside.txt"], [entry.name for entry in listing.files])

    def test_prefix_without_mode_lists(self):
        listing = self.controller.handle_get(None, None, prefix="docs")
        payload = self.controller.handle_get("docs/readme.txt", None, prefix="docs")

        self.assertEqual(["readme.txt"], [entry.name for entry in listing.files])
        self.assertEqual(b"0123456789", payload.body)

    def test_missing_file_surfaces_not_found(self):
        with self.assertRaises(NotFoundError):
            self.controller.handle_get("docs/missing.txt", "download")


class SeparatorRoutingTests(unittest.TestCase):
    def setUp(self):
        self.controller, self.client = build_controller(routing=SeparatorRouting())
        self.client.add("docs/readme.txt", b"0123456789")

    def test_key_without_separator_is_a_folder(self):
        listing = self.controller.handle_get("docs", None)

        self.assertEqual(["readme.txt"], [entry.name for entry in listing.files])

    def test_all_lists_the_root(self):
        listing = self.controller.handle_get("all", None)

        self.assertEqual("", listing.prefix)
        self.assertEqual(["docs"], [folder.name for folder in listing.folders])

    def test_key_with_separator_is_a_file(self):
        payload = self.controller.handle_get("docs/readme.txt", "folder")

        self.assertEqual(b"0123456789", payload.body)
        self.assertEqual(("folder", "new/"), self.controller.handle_post("new", None))
        self.assertEqual(("file", "docs/b.txt"), self.controller.handle_post("docs/b.txt", None, b"b"))


class RoutingPolicyTests(unittest.TestCase):
    def test_builds_policies_by_name(self):
        self.assertIsInstance(build_routing_policy("explicit"), ExplicitTypeRouting)
        self.assertIsInstance(build_routing_policy("separator"), SeparatorRouting)
        with self.assertRaises(ValueError):
            build_routing_policy("guess")


class UploadManyTests(unittest.TestCase):
    def test_uploads_every_item(self):
        controller, client = build_controller(max_concurrency=2)
        items = [UploadItem(key=f"batch/{index}.txt", body=b"data") for index in range(5)]

        uploaded = controller.upload_many(items)

        self.assertEqual([item.key for item in items], uploaded)
        self.assertEqual(5, len([key for key in client.objects if key.startswith("batch/")]))

    def test_reports_first_failure_without_rollback(self):
        controller, client = build_controller()
        client.failing_put_keys.update({"batch/1.txt", "batch/3.txt"})
        items = [UploadItem(key=f"batch/{index}.txt", body=b"data") for index in range(5)]

        with self.assertRaises(WriteFailedError) as ctx:
            controller.upload_many(items)

        self.assertIn("batch/1.txt", str(ctx.exception))
        self.assertEqual(
            {"batch/0.txt", "batch/2.txt", "batch/4.txt"},
            set(client.objects),
        )

    def test_validates_before_uploading(self):
        controller, client = build_controller()

        with self.assertRaises(ValidationFailedError):
            controller.upload_many([UploadItem(key="a.txt", body=b"a"), UploadItem(key="b.txt", body=b"")])
        with self.assertRaises(ValidationFailedError):
            controller.upload_many([])
        self.assertEqual([], client.put_calls)

    def test_folder_shaped_key_rejects_the_whole_batch(self):
        controller, client = build_controller()
        items = [UploadItem(key="docs/a.txt", body=b"a"), UploadItem(key="docs/", body=b"b")]

        with self.assertRaises(ValidationFailedError):
            controller.upload_many(items)
        self.assertEqual([], client.put_calls)
        self.assertEqual({}, client.objects)


class StatusMappingTests(unittest.TestCase):
    def test_maps_taxonomy_to_status(self):
        self.assertEqual(404, status_for_error(NotFoundError("a")))
        self.assertEqual(401, status_for_error(UnauthorizedError()))
        self.assertEqual(400, status_for_error(ValidationFailedError("bad")))
        self.assertEqual(500, status_for_error(ListFailedError("x")))
        self.assertEqual(500, status_for_error(WriteFailedError("x")))
        self.assertEqual(500, status_for_error(DeleteFailedError("x")))


if __name__ == "__main__":
    unittest.main()
