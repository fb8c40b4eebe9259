import tempfile
import unittest
from pathlib import Path

from s3_fakes import FakeKeychain
from s3_files.__main__ import build_parser, configure
from s3_files.settings import TOKEN_ENTRY, AppSettings, SettingsStorage


class ConfigureCommandTests(unittest.TestCase):
    def test_saves_only_given_options(self):
        with tempfile.TemporaryDirectory() as tmp:
            keychain = FakeKeychain()
            storage = SettingsStorage(Path(tmp) / "settings.json", keychain=keychain)
            storage.save(AppSettings(active_profile="media", port=9000))
            args = build_parser().parse_args(["configure", "--token", "s3cret", "--routing", "separator"])

            configure(args, storage)

            settings = storage.load()
            self.assertEqual("s3cret", keychain.secrets[TOKEN_ENTRY])
            self.assertEqual("separator", settings.routing)
            self.assertEqual("media", settings.active_profile)
            self.assertEqual(9000, settings.port)

    def test_serve_is_the_default_command(self):
        self.assertIsNone(build_parser().parse_args([]).command)
        self.assertEqual("serve", build_parser().parse_args(["serve"]).command)

    def test_rejects_unknown_routing(self):
        with self.assertRaises(SystemExit):
            build_parser().parse_args(["configure", "--routing", "guess"])


if __name__ == "__main__":
    unittest.main()
