"""
VoiceReplica.

Architecture:
  Microphone -> Speech Recognition -> LLM intent classifier (rule fallback)
  -> Action dispatcher -> Playwright page -> Text-to-Speech
"""

import asyncio
import json
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from voicereplica.config import validate_config
from voicereplica.console import log_line
from voicereplica.dispatch import dispatch
from voicereplica.errors import VoiceReplicaError
from voicereplica.messenger import Messenger
from voicereplica.models import ActionRequest, ExecutionResult, IntentResult
from voicereplica.service import IntentService, to_error_response, to_response
from voicereplica.voice import RESTART_DELAY_SECONDS, Speaker, SpeechError, SpeechListener

SUMMARY_SPOKEN_CHARS = 500


@dataclass
class CommandOutcome:
    response: Dict[str, Any]
    request: Optional[ActionRequest] = None
    execution: Optional[ExecutionResult] = None

    @property
    def spoken(self) -> str:
        if "intent" not in self.response:
            return str(self.response.get("message", "Something went wrong."))
        if self.execution is None:
            return str(self.response.get("message", ""))
        if self.execution.success and self.execution.summary:
            return self.execution.summary[:SUMMARY_SPOKEN_CHARS]
        return self.execution.spoken


async def run_command(text: str, service: IntentService, messenger: Messenger) -> CommandOutcome:
    try:
        result: IntentResult = await service.process(text)
    except VoiceReplicaError as exc:
        log_line(f"ERROR: {exc.message} ({exc.status_code}).")
        return CommandOutcome(to_error_response(exc))

    response = to_response(result)
    request = dispatch(result)
    if request.action == "NONE":
        return CommandOutcome(response, request)
    execution = await asyncio.to_thread(messenger.send, request)
    if not execution.success:
        log_line(f"WARN: {request.action} failed ({execution.error}).")
    return CommandOutcome(response, request, execution)


async def listen_loop(service: IntentService, messenger: Messenger, speaker: Speaker) -> None:
    listener = SpeechListener()
    log_line(f"Using microphone: {listener.microphone_name}")
    await asyncio.to_thread(listener.calibrate, 1.5)
    log_line("Ready.")

    running = True
    while running:
        log_line("\nListening...")
        try:
            text = await asyncio.to_thread(listener.listen)
        except SpeechError as exc:
            if not exc.recoverable:
                log_line(f"ERROR: {exc}")
                await asyncio.to_thread(speaker.say, exc.info.message)
                running = False
                continue
            if exc.info.kind != "no-speech":
                log_line(f"  {exc}; listening again.")
            await asyncio.sleep(RESTART_DELAY_SECONDS)
            continue
        except KeyboardInterrupt:
            running = False
            continue

        if not text:
            continue
        log_line(f'  Heard: "{text}"')
        outcome = await run_command(text, service, messenger)
        await asyncio.to_thread(speaker.say, outcome.spoken)


async def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    validate_config()
    service = IntentService()
    messenger = Messenger()
    speaker = Speaker()
    try:
        if args:
            outcome = await run_command(" ".join(args), service, messenger)
            payload: Dict[str, Any] = {"response": outcome.response}
            if outcome.execution is not None:
                payload["execution"] = outcome.execution.to_dict()
            log_line(json.dumps(payload, indent=2, ensure_ascii=False))
            await asyncio.to_thread(speaker.say, outcome.spoken)
            if "intent" not in outcome.response:
                return 2
            return 0 if outcome.execution is None or outcome.execution.success else 1
        await listen_loop(service, messenger, speaker)
        return 0
    finally:
        await asyncio.to_thread(messenger.close)
        log_line("VoiceReplica closed.")


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        log_line("Interrupted. Exiting cleanly.")
