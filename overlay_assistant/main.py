"""
CLI entrypoint for the overlay assistant orchestration core.

Usage examples:
  - Interactive chat (type :stop to stop a response, :cycle to cycle the orb):
      python -m overlay_assistant.main chat

  - Single message through the full turn:
      python -m overlay_assistant.main single --message "play the weeknd"

  - Inspect routing for a line of text:
      python -m overlay_assistant.main classify --message "volume 40" --no-model

  - History and status:
      python -m overlay_assistant.main history --limit 10
      python -m overlay_assistant.main status
"""

import asyncio
import json
from argparse import ArgumentParser
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from . import config as core_config
from .config_models import CoreConfig
from .factory import ProviderFactory
from .orchestrator import Orchestrator
from .routing.intent_classifier import IntentClassifier, resolve_decision
from .routing.pattern_router import PatternRouter, looks_like_control_command
from .utils.event_bus import TOKEN_EVENT
from .utils.logging_config import setup_logging


def _build_config(env: str, llm: Optional[str], log_level: Optional[str]) -> Dict[str, Any]:
    """Create configuration for the orchestrator with optional overrides."""
    if llm:
        core_config.set_providers(language_model=llm)

    if env and env != "default":
        core_config.set_active_preset(env)
    cfg = core_config.get_config_for_preset()
    try:
        CoreConfig.from_legacy_dict(cfg)
    except ValidationError as e:
        raise SystemExit(f"❌ Invalid configuration:\n{e}")

    logging_cfg = cfg.get("logging", {})
    if log_level:
        logging_cfg["level"] = log_level
    log_file = logging_cfg.get("log_file")
    setup_logging(
        level=logging_cfg.get("level", "INFO"),
        log_file=Path(log_file) if log_file else None,
        use_colors=logging_cfg.get("use_colors", True),
        use_emojis=logging_cfg.get("use_emojis", True),
    )
    return cfg


async def _create_orchestrator(config: Dict[str, Any]) -> Orchestrator:
    orchestrator = Orchestrator.from_config(config)
    await orchestrator.initialize()
    return orchestrator


def _print_item(orchestrator: Orchestrator) -> None:
    item = orchestrator.current_item
    if item is not None:
        print(f"🤖 {item.response}")


async def cmd_chat(args) -> int:
    config = _build_config(args.env, args.llm, args.log_level)
    orchestrator = await _create_orchestrator(config)
    streamed = {"active": False}

    def on_token(event):
        if not streamed["active"]:
            print("🤖 ", end="", flush=True)
            streamed["active"] = True
        print(event.text, end="", flush=True)

    def on_turn_done(_task):
        if streamed["active"]:
            print()
            streamed["active"] = False
        else:
            _print_item(orchestrator)

    printer = orchestrator.bus.subscribe(TOKEN_EVENT, on_token)
    print("💬 Chat ready. Commands: :stop, :cycle, :quit, /help")
    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "you> ")
            except EOFError:
                break

            command = line.strip()
            if command in (":quit", ":q", "exit"):
                break
            if command == ":stop":
                orchestrator.stop()
                _print_item(orchestrator)
                continue
            if command == ":cycle":
                print(f"🔄 Visual state: {orchestrator.cycle_visual_state().value}")
                continue

            task = orchestrator.submit(line)
            if task is not None:
                task.add_done_callback(on_turn_done)
            elif orchestrator.is_locked:
                print("⏳ Still responding (type :stop to cancel)")
            elif command.startswith("/"):
                _print_item(orchestrator)
        return 0
    finally:
        printer.unsubscribe()
        await orchestrator.cleanup()


async def cmd_single(args) -> int:
    if not args.message:
        print("Error: --message is required for single")
        return 2

    config = _build_config(args.env, args.llm, args.log_level)
    orchestrator = await _create_orchestrator(config)
    try:
        task = orchestrator.submit(args.message)
        if task is not None:
            await task
        item = orchestrator.current_item
        print(json.dumps(item.to_dict() if item else None, indent=2))
        return 0
    finally:
        await orchestrator.cleanup()


async def cmd_classify(args) -> int:
    if not args.message:
        print("Error: --message is required for classify")
        return 2

    config = _build_config(args.env, args.llm, args.log_level)
    intent = PatternRouter().classify(args.message)
    result: Dict[str, Any] = {
        "text": args.message,
        "intent": None,
        "control_command": looks_like_control_command(args.message, intent),
        "model_decision": None,
    }
    if intent is not None:
        result["intent"] = {
            "action": intent.action.value,
            "explicit": intent.explicit,
            "searchQuery": intent.search_query,
            "mediaType": intent.media_type.value if intent.media_type else None,
            "value": intent.value,
            "adjustment": intent.adjustment,
        }

    model_decision = None
    if not args.no_model:
        lm_section = config["language_model"]
        language_model = ProviderFactory.create_language_model_provider(
            lm_section["provider"], lm_section.get("config", {})
        )
        classifier = IntentClassifier(
            language_model,
            timeout_ms=config["classifier"].get("timeout_ms", 4500),
            model=config["classifier"].get("model"),
        )
        try:
            model_decision = await classifier.classify(args.message, hint=intent)
        finally:
            await classifier.shutdown()
            await language_model.cleanup()
        result["model_decision"] = model_decision.to_payload() if model_decision else None

    decision = resolve_decision(model_decision, intent)
    result["decision"] = decision.to_payload() if decision else None
    print(json.dumps(result, indent=2))
    return 0


async def cmd_history(args) -> int:
    config = _build_config(args.env, args.llm, args.log_level)
    section = config["history"]
    history = ProviderFactory.create_history_provider(section["provider"], section.get("config", {}))
    items = history.load()
    if args.limit:
        items = items[-args.limit:]
    print(json.dumps([item.to_dict() for item in items], indent=2))
    return 0


async def cmd_status(args) -> int:
    config = _build_config(args.env, args.llm, args.log_level)
    core_config.print_config_summary()
    orchestrator = Orchestrator.from_config(config)
    try:
        print(json.dumps(orchestrator.get_status(), indent=2, default=str))
        print(json.dumps(ProviderFactory.get_available_providers(), indent=2))
        return 0
    finally:
        await orchestrator.cleanup()


def _add_common_args(p):
    p.add_argument("--env", choices=["dev", "prod", "test", "default"], default="default",
                   help="Configuration profile to use (default comes from overlay_assistant.config.CONFIG_PRESET)")
    p.add_argument("--llm", choices=["ollama", "openai"], help="Override language model provider")
    p.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Override log level")


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="overlay_assistant")
    sub = parser.add_subparsers(dest="command", required=True)

    # chat
    p_chat = sub.add_parser("chat", help="Interactive chat and media control")
    _add_common_args(p_chat)
    p_chat.set_defaults(func=cmd_chat)

    # single
    p_single = sub.add_parser("single", help="Process a single message through a full turn")
    _add_common_args(p_single)
    p_single.add_argument("--message", help="Message to process")
    p_single.set_defaults(func=cmd_single)

    # classify
    p_classify = sub.add_parser("classify", help="Show how a message would be routed")
    _add_common_args(p_classify)
    p_classify.add_argument("--message", help="Message to classify")
    p_classify.add_argument("--no-model", action="store_true", help="Pattern router only")
    p_classify.set_defaults(func=cmd_classify)

    # history
    p_history = sub.add_parser("history", help="Print saved chat history")
    _add_common_args(p_history)
    p_history.add_argument("--limit", type=int, help="Only the most recent N entries")
    p_history.set_defaults(func=cmd_history)

    # status
    p_status = sub.add_parser("status", help="Show configuration and orchestrator status")
    _add_common_args(p_status)
    p_status.set_defaults(func=cmd_status)

    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
