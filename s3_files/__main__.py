"""Command line entry point for the S3 file manager server.

Usage:
    pys3files [serve]
    pys3files configure [--token TOKEN] [--profile NAME] [--routing POLICY]
                        [--host HOST] [--port PORT]
"""
import argparse
from dataclasses import replace
import logging
import os

from flask import Flask

from .controller import FileManagerController, build_routing_policy
from .profiles import ProfileStorage, profile_from_env
from .services import S3FileService
from .settings import ROUTING_POLICIES, SettingsStorage, apply_env_overrides
from .web import create_app

LOGGER = logging.getLogger("s3_files")


def build_app(storage: SettingsStorage | None = None) -> tuple[Flask, str, int]:
    settings = apply_env_overrides((storage or SettingsStorage()).load())
    try:
        base_profile = ProfileStorage().get(settings.active_profile) if settings.active_profile else None
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    profile = profile_from_env(base=base_profile)
    if profile is None or not profile.is_complete:
        raise SystemExit(
            "No complete storage profile: save one or set PYS3FILES_BUCKET, "
            "PYS3FILES_REGION, PYS3FILES_ACCESS_KEY and PYS3FILES_SECRET_KEY"
        )
    LOGGER.info("Serving bucket '%s' with profile '%s'", profile.bucket, profile.name)
    controller = FileManagerController(
        S3FileService(profile),
        routing=build_routing_policy(settings.routing),
        max_concurrency=settings.upload_max_concurrency,
    )
    return create_app(controller, settings), settings.host, settings.port


def configure(args: argparse.Namespace, storage: SettingsStorage | None = None) -> None:
    """Persist the given options; the token goes to the keychain."""

    storage = storage or SettingsStorage()
    updates = {
        "auth_token": args.token,
        "active_profile": args.profile,
        "routing": args.routing,
        "host": args.host,
        "port": args.port,
    }
    settings = replace(storage.load(), **{name: value for name, value in updates.items() if value is not None})
    storage.save(settings)
    LOGGER.info("Saved settings (profile '%s', routing '%s')", settings.active_profile, settings.routing)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pys3files", description="Serve an S3 bucket as folders over HTTP.")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("serve", help="Run the HTTP server (default)")
    configure_parser = subparsers.add_parser("configure", help="Save server settings")
    configure_parser.add_argument("--token", help="Shared secret for the Authorization header")
    configure_parser.add_argument("--profile", help="Name of the saved storage profile to serve")
    configure_parser.add_argument("--routing", choices=ROUTING_POLICIES)
    configure_parser.add_argument("--host")
    configure_parser.add_argument("--port", type=int)
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    debug = os.environ.get("PYS3FILES_DEBUG") == "1"
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if args.command == "configure":
        configure(args)
        return
    app, host, port = build_app()
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    main()
