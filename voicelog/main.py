"""
Command line voice assistant.

Talks to the realtime model through the local microphone and speaker and
stores every dictated expense, income or time-log entry in memory. Stored
rows are printed when the session ends.

    voicelog --sheet-id my-sheet --user "Asha"
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from voicelog.config import reload_config, set_config
from voicelog.config.env_loader import load_env_file
from voicelog.config.logging_config import configure_logging, set_log_level
from voicelog.config.models import ApplicationConfig
from voicelog.handlers.error_handler import ErrorInfo
from voicelog.handlers.host_bridge import FunctionCall, FunctionResult
from voicelog.models.records import CommandKind
from voicelog.realtime.config_provider import (
    HttpSessionConfigProvider,
    SessionConfigProvider,
    StaticSessionConfigProvider,
    build_session_config,
)
from voicelog.realtime.session import ConnectionState, RealtimeSession
from voicelog.services.ledger_bridge import LedgerHostBridge
from voicelog.services.notifier import WebhookNotifier
from voicelog.services.record_store import MemoryRecordStore

logger = configure_logging("voicelog.main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voicelog",
        description="Dictate expenses, income and time logs to a realtime voice assistant",
    )
    parser.add_argument("--bootstrap-url", help="Fetch session settings from this URL")
    parser.add_argument("--sheet-id", help="Ledger sheet the rows are stored under")
    parser.add_argument("--user", help="User name stamped on stored rows")
    parser.add_argument("--muted", action="store_true", help="Start with assistant audio muted")
    parser.add_argument(
        "--no-functions",
        action="store_true",
        help="Complete commands from JSON in the response text instead of function calls",
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--env-file", help="Path to a .env file")
    return parser


def apply_args(config: ApplicationConfig, args: argparse.Namespace) -> ApplicationConfig:
    """Overlay command line options on the loaded configuration."""
    if args.bootstrap_url:
        config.bootstrap.url = args.bootstrap_url
    if args.sheet_id:
        config.ledger.sheet_id = args.sheet_id
    if args.user:
        config.ledger.user_name = args.user
    if args.muted:
        config.audio.start_muted = True
    if args.no_functions:
        config.realtime.use_function_calling = False
    return config


def build_provider(config: ApplicationConfig) -> SessionConfigProvider:
    if config.bootstrap.enabled:
        return HttpSessionConfigProvider(
            config.bootstrap, fallback_session=build_session_config(config)
        )
    return StaticSessionConfigProvider(config)


def _print_error(error_info: ErrorInfo) -> None:
    print(f"[{error_info.context.value}] {error_info.error}", file=sys.stderr)


def _print_result(call: FunctionCall, result: FunctionResult) -> None:
    status = "OK" if result.success else "FAILED"
    print(f"[{call.name}] {status}: {result.message}")


async def run(config: ApplicationConfig) -> int:
    # PortAudio is only needed when actually talking to the devices
    from voicelog.audio.sounddevice_io import SoundDeviceSink, SoundDeviceSource

    store = MemoryRecordStore()
    notifier = WebhookNotifier(config.notification)
    host = LedgerHostBridge(
        store,
        ledger=config.ledger,
        notifier=notifier,
        slot_duration_minutes=config.realtime.slot_duration_minutes,
    )
    session = RealtimeSession(
        build_provider(config),
        host,
        SoundDeviceSource(),
        SoundDeviceSink(sample_rate=config.audio.sample_rate),
        audio_config=config.audio,
        realtime_config=config.realtime,
        on_user_transcript=lambda text: print(f"You: {text}"),
        on_function_result=_print_result,
    )
    session.error_handler.register_handler(_print_error)

    final_state = ConnectionState.ERROR
    try:
        await session.start_capture()
        print("Listening. Press Ctrl-C to stop.")
        while session.state == ConnectionState.CONNECTED:
            await asyncio.sleep(0.5)
        final_state = session.state
    except asyncio.CancelledError:
        pass
    finally:
        await session.disconnect()
        await host.wait_pending()
        await notifier.wait_pending()

    for kind in CommandKind:
        for row in await store.list_records(config.ledger.sheet_id, kind):
            print(f"{kind.value}: {json.dumps(row, ensure_ascii=False)}")
    return 1 if final_state == ConnectionState.ERROR else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_env_file(args.env_file)
    config = apply_args(reload_config(), args)
    set_config(config)
    if args.log_level:
        set_log_level(args.log_level)

    try:
        return asyncio.run(run(config))
    except KeyboardInterrupt:
        print("\nStopped by user")
        return 0
    except Exception as e:
        logger.error(f"Voice session failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
