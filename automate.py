#!/usr/bin/env python3
"""
automate.py - turn a video concept or file into a YouTube upload.

Generates title/description/tags with Gemini, renders a thumbnail with the
Gemini image model, then uploads the video (private by default) and attaches
the thumbnail through the YouTube Data API v3.

Usage:
    python automate.py create "Concept for a cooking tutorial"
    python automate.py create "Knife skills" --file ~/Videos/knife.mp4 --upload
    python automate.py create --file ~/Videos/knife.mp4 --upload --privacy unlisted
    python automate.py setup-auth
    python automate.py check

Keys are read from the environment or a .env file at the project root:
GEMINI_API_KEY, GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, YOUTUBE_REFRESH_TOKEN.
"""

import argparse
import asyncio
import dataclasses
import logging
import os
import sys
import textwrap

from tube_automator.auth import OAuthCredentials, build_credentials
from tube_automator.config import PRIVACY_STATUSES, load_config
from tube_automator.errors import TubeAutomatorError
from tube_automator.models import JobStatus
from tube_automator.orchestrator import JobOrchestrator

SIGN_IN_TIMEOUT = 300


def build_parser():
    parser = argparse.ArgumentParser(
        prog="automate",
        description="Concept-to-YouTube automation (Gemini + YouTube Data API)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
        Examples:
            %(prog)s create "5 knife skills every home cook needs"
            %(prog)s create --file ~/Videos/knife.mp4 --upload
            %(prog)s setup-auth
        """),
    )
    parser.add_argument("--env", default=None, help="Path to a .env file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show pipeline log events")

    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create", help="Generate metadata + thumbnail, optionally upload")
    create.add_argument("concept", nargs="?", default="", help="Free-text video concept")
    create.add_argument("--file", default=None, help="Video file to upload")
    create.add_argument("--upload", action="store_true", help="Upload once the job is ready")
    create.add_argument("--privacy", choices=PRIVACY_STATUSES, default=None,
                        help="Override YOUTUBE_PRIVACY (default: private)")

    subparsers.add_parser("setup-auth", help="Run the OAuth consent flow and save a refresh token")
    subparsers.add_parser("check", help="Show which settings are configured")
    return parser


def print_job(job):
    print(f"[Job] {job.id}  {job.filename}  ({job.display_size})")
    print(f"[Status] {job.status.value}")
    if job.result:
        print(f"[Title] {job.result.title}")
        print(f"[Tags] {', '.join(job.result.tags)}")
        thumb = job.result.thumbnail_url or ""
        print(f"[Thumbnail] {'inline image' if thumb.startswith('data:') else thumb or 'none'}")
        print("-" * 64)
        print(job.result.description)
        print("-" * 64)
    if job.error:
        print(f"[Error] {job.error}")
    if job.youtube_url:
        print(f"[YouTube] {job.youtube_url}")


async def _wait_for_token(credentials, timeout):
    loop = asyncio.get_running_loop()
    ready = asyncio.Event()

    def on_token(_token):
        loop.call_soon_threadsafe(ready.set)

    credentials.add_listener(on_token)
    try:
        if credentials.has_token:
            return True
        await asyncio.wait_for(ready.wait(), timeout)
        return True
    except asyncio.TimeoutError:
        return False
    finally:
        credentials.remove_listener(on_token)


async def _upload_with_progress(orchestrator, job_id):
    task = asyncio.create_task(orchestrator.upload(job_id))
    last = -1
    while not task.done():
        percent = orchestrator.progress(job_id)
        if percent != last:
            print(f"\r[Upload] {percent:3d}%", end="", flush=True)
            last = percent
        await asyncio.sleep(0.5)
    print(f"\r[Upload] {orchestrator.progress(job_id):3d}%")
    return task.result()


async def run_create(config, args):
    credentials = build_credentials(config)
    orchestrator = JobOrchestrator(config, credentials)

    job = await orchestrator.add_job(args.concept, args.file)
    print(f"[Mode] {'Analyze + upload' if args.upload else 'Analyze only'}")
    print(f"[Concept] {job.concept}")
    print("[Gemini] Generating metadata and thumbnail...")
    job = await orchestrator.wait(job.id)

    if job.status != JobStatus.READY_TO_UPLOAD or not args.upload:
        print_job(job)
        return 0 if job.status != JobStatus.FAILED else 1

    if not credentials.has_token:
        print("[YouTube] Not connected. Requesting access token...")
        credentials.request_token()
        if not await _wait_for_token(credentials, SIGN_IN_TIMEOUT):
            print("[YouTube] Sign-in did not complete. Run: python automate.py setup-auth")
            print_job(orchestrator.get(job.id))
            return 1
        print("[YouTube] Connected.")

    result = await _upload_with_progress(orchestrator, job.id)
    print_job(result)
    return 0 if result.status == JobStatus.COMPLETED else 1


def run_setup_auth(config):
    if not config.youtube_client_id:
        print("[ERROR] GOOGLE_CLIENT_ID not set.")
        return 1
    credentials = OAuthCredentials(
        client_id=config.youtube_client_id,
        client_secret=config.youtube_client_secret,
        token_path=config.token_path,
    )
    print("[YouTube] Starting OAuth2 consent flow...")
    print("[YouTube] A browser window will open. Sign in and grant YouTube upload access.")
    credentials.run_consent_flow()
    print(f"[YouTube] Refresh token saved to {config.token_path}")
    return 0


def run_check(config):
    for name, value in [
        ("GEMINI_API_KEY", config.gemini_api_key),
        ("GOOGLE_CLIENT_ID", config.youtube_client_id),
        ("GOOGLE_CLIENT_SECRET", config.youtube_client_secret),
        ("YOUTUBE_REFRESH_TOKEN", config.youtube_refresh_token or config.token_path.exists()),
        ("YOUTUBE_ACCESS_TOKEN", config.youtube_access_token),
        ("SLACK_WEBHOOK_URL", config.slack_webhook_url),
    ]:
        print(f"  {name:<24} {'set' if value else '-'}")
    print(f"  {'models':<24} {config.metadata_model} / {config.image_model}")
    print(f"  {'upload defaults':<24} category={config.category_id} privacy={config.privacy_status}")
    if not config.is_configured:
        print(f"[WARN] Missing: {', '.join(config.missing_keys())}")
        return 1
    return 0


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    try:
        config = load_config(args.env)
        if args.command == "check":
            return run_check(config)
        if args.command == "setup-auth":
            return run_setup_auth(config)

        if args.privacy:
            config = dataclasses.replace(config, privacy_status=args.privacy)
        if not config.is_configured:
            print(f"[ERROR] Missing settings: {', '.join(config.missing_keys())}")
            return 1
        if not args.concept.strip() and not args.file:
            parser.error("create needs a concept, a --file, or both")
        if args.file and not os.path.isfile(args.file):
            print(f"[ERROR] Video file not found: {args.file}")
            return 1
        return asyncio.run(run_create(config, args))
    except TubeAutomatorError as exc:
        print(f"[ERROR] {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
